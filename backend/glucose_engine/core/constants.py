"""
Central location for constant values and thresholds used across the engine.
"""

# Below this many grams a meal no longer counts as "active"
NEGLIGIBLE_CARBS_G = 0.1

# Systemic insulin contributions below this are ignored in COB status
NEGLIGIBLE_INSULIN_U = 0.01

# Whole-body clearance half-life used by the COB aggregator (3.5 h)
SYSTEMIC_INSULIN_HALF_LIFE_MIN = 210.0

# Ages closer than this to 0 are treated as "just logged"
AGE_EPSILON_MIN = 1e-9

# Activity phase classification: +/- window around the profile peak
PEAK_WINDOW_MIN = 15.0

# Prediction confidence decays linearly to zero at this horizon (6 h)
CONFIDENCE_ZERO_HORIZON_MIN = 360.0

# Outside this range a prediction is flagged as implausible (mmol/L)
PLAUSIBLE_GLUCOSE_MIN = 2.0
PLAUSIBLE_GLUCOSE_MAX = 20.0

# 2-hour outlook: change (mmol/L) beyond which the trend is rising/falling
OUTLOOK_HORIZON_MIN = 120
OUTLOOK_TREND_THRESHOLD = 1.0

# Unit conversion
MGDL_PER_MMOL = 18.0

# Glucose status thresholds (mmol/L)
GLUCOSE_THRESHOLDS = {
    "low": 3.9,  # < 70 mg/dL
    "normal": 10.0,  # 70-180 mg/dL
    "high": 13.9,  # 180-250 mg/dL
}

# COB chart projection defaults
COB_PROJECTION_POINTS = 24
COB_PROJECTION_INTERVAL_MIN = 15
