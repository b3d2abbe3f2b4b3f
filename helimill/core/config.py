"""
Configuration module for the helical milling modelling pipeline.
Collects all configuration constants and settings in one place.
"""

import os
from dotenv import load_dotenv

# Load environment variables
# Try to load from multiple possible locations
load_dotenv()  # Load from .env in root directory if it exists
load_dotenv("config/helimill_config.env")  # Load from config directory

# Environment-specific configuration
ENV = os.getenv("ENVIRONMENT", "development")
if ENV == "production":
    load_dotenv("config/production.env")
else:
    load_dotenv("config/development.env")

# ==================== VERSION ====================
CODE_VERSION = "v1.0.0"

# ==================== PATHS & DIRECTORIES ====================
PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DATASET_CSV = os.getenv("HM_DATASET_CSV", os.path.join(PACKAGE_DIR, "data", "ccd_helical_milling.csv"))
REPORT_DIR = os.getenv("HM_REPORT_DIR", "helimill-reports")
REPORT_XLSX = os.getenv("HM_REPORT_XLSX", "helimill_results.xlsx")

# ==================== DESIGN OF EXPERIMENTS ====================
# Coded factors: x1 tangential feed per tooth, x2 axial feed per revolution, x3 cutting speed
FEATURES = ["x1", "x2", "x3"]
RESPONSES = ["Ra", "Rq", "Rz"]
LATENT_RESPONSE = os.getenv("HM_LATENT_COL", "PC1")

# Axial distance of the rotatable CCD, (2^3)^(1/4)
CCD_ALPHA = float(os.getenv("HM_CCD_ALPHA", "1.682"))

# ==================== RESAMPLING PARAMETERS ====================
SEED = int(os.getenv("HM_SEED", "123"))
N_FOLDS = int(os.getenv("HM_FOLDS", "18"))
N_BOOTSTRAP = int(os.getenv("HM_BOOTSTRAP", "200"))
TUNING_FOLDS = int(os.getenv("HM_TUNING_FOLDS", "6"))
SIGNIFICANCE_LEVEL = float(os.getenv("HM_ALPHA", "0.05"))
MIN_SAMPLES_PER_GROUP = int(os.getenv("HM_MIN_SAMPLES_PER_GROUP", "5"))

# ==================== MODEL PARAMETERS ====================
N_TREES = int(os.getenv("HM_NTREES", "200"))
MODEL_SEED = int(os.getenv("HM_MODEL_SEED", "0"))
RF_MAX_FEATURES = int(os.getenv("HM_RF_MTRY", "1"))  # floor(p/3) for p=3 predictors
MIN_SAMPLES_LEAF = int(os.getenv("HM_MIN_SAMPLES_LEAF", "1"))

SVR_KERNELS = [k.strip() for k in os.getenv("HM_SVR_KERNELS", "linear,rbf,poly").split(",") if k.strip()]
SVR_DEFAULT_COST = float(os.getenv("HM_SVR_COST", "1.0"))
SVR_DEFAULT_GAMMA = float(os.getenv("HM_SVR_GAMMA", str(1.0 / len(FEATURES))))
SVR_EPSILON = float(os.getenv("HM_SVR_EPSILON", "0.1"))
SVR_POLY_DEGREE = int(os.getenv("HM_SVR_DEGREE", "3"))
SVR_COST_GRID = [float(v) for v in os.getenv("HM_SVR_COST_GRID", "0.25,0.5,1,2,4,8,16,32,64").split(",")]
SVR_GAMMA_GRID = [float(v) for v in os.getenv("HM_SVR_GAMMA_GRID", "0.015625,0.03125,0.0625,0.125,0.25,0.5,1,2").split(",")]

# ==================== NSGA-II PARAMETERS ====================
POP_SIZE = int(os.getenv("HM_POP_SIZE", "200"))
N_GENERATIONS = int(os.getenv("HM_GENERATIONS", "100"))
CROSSOVER_PROB = float(os.getenv("HM_CROSSOVER_PROB", "0.9"))
CROSSOVER_ETA = float(os.getenv("HM_CROSSOVER_ETA", "20"))
MUTATION_ETA = float(os.getenv("HM_MUTATION_ETA", "20"))
FEASIBILITY_PROBE = int(os.getenv("HM_FEASIBILITY_PROBE", "1024"))
LOG_EVERY = int(os.getenv("HM_LOG_EVERY", "10"))

# ==================== MACHINING GEOMETRY ====================
TOOL_DIAMETER = float(os.getenv("HM_TOOL_DIAMETER", "10.0"))    # mm
HOLE_DIAMETER = float(os.getenv("HM_HOLE_DIAMETER", "16.0"))    # mm
N_TEETH = int(os.getenv("HM_N_TEETH", "3"))

# Physical level = centre + coded * step
FACTOR_LEVELS = {
    "fz": (0.06, 0.02),   # tangential feed per tooth, mm/z
    "fa": (0.006, 0.002), # axial feed per tool revolution, mm/rev
    "vc": (50.0, 10.0),   # cutting speed, m/min
}
FACTOR_NAMES = list(FACTOR_LEVELS.keys())
