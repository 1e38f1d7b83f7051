"""
PURPOSE: Engine-wide constants for simulation, sensitivity and optimization.

Configuration only, no logic beyond small getters.
"""

# Metrics
ROI_HORIZON_MONTHS = 60  # 5-year ROI window

# Distribution evaluation
NORMAL_SIGMA_RANGE = 3.0  # min/max scenarios of a normal sit at mean -/+ 3 sigma

# Scenario controls
MULTIPLIER_MIN = 0.0
MULTIPLIER_MAX = 5.0

# Revenue recognition
DEFAULT_CONTRACT_LENGTH_MONTHS = 12  # annual billing renews every 12 months

# Sensitivity analysis
SENSITIVITY_PERTURBATION_PERCENT = 10.0

# Optimizer
OPTIMIZER_STEP_PERCENTS = (5.0, 10.0, 15.0, 20.0, 25.0, 30.0)
DEFAULT_MAX_ADJUSTMENT_PERCENT = 30.0
BALANCED_ROI_WEIGHT = 0.1          # score per ROI percentage point
BALANCED_PROFITABILITY_WEIGHT = 1.0  # penalty per month to profitability

# Fan-out
MAX_WORKERS = 4

# Output
ROUND_MONEY = 2
ROUND_PERCENT = 2


def get_balanced_weights():
    """Return weights of the balanced optimization objective."""
    return {
        "roi": BALANCED_ROI_WEIGHT,
        "profitability": BALANCED_PROFITABILITY_WEIGHT,
    }


def get_multiplier_bounds():
    """Return the (low, high) bounds of per-entity risk multipliers."""
    return MULTIPLIER_MIN, MULTIPLIER_MAX
