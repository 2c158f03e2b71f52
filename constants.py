# Boltzmann constant in eV/K, used for Arrhenius scaling of temperature
BOLTZMANN_EV = 8.62e-5
KELVIN_OFFSET = 273.15

# Raw column names (one row per site-year)
GPP_COL = 'ann_GPP_C'
ER_COL = 'ann_ER_C'
AR1_COL = 'Disch_ar1'
DISCH_CV_COL = 'Disch_cv'
DISCH_AMP_COL = 'Disch_amp'
DISCH_SKEW_COL = 'Disch_skew'
NPP_COL = 'MOD_ann_NPP'
AREA_COL = 'ws_area_km2'
WIDTH_COL = 'width'
TEMP_COL = 'temp_mean'
LIGHT_COL = 'Stream_PAR_sum'
LAT_COL = 'Lat'
SITE_COL = 'Name'
YEAR_COL = 'Year'

REQUIRED_COLUMNS = [
    GPP_COL,
    ER_COL,
    AR1_COL,
    DISCH_CV_COL,
    DISCH_AMP_COL,
    DISCH_SKEW_COL,
    NPP_COL,
    AREA_COL,
    WIDTH_COL,
    TEMP_COL,
    LIGHT_COL,
    LAT_COL,
    SITE_COL
    ]

# Derived (transformed) variables, in output order
TRANSFORMED_COLUMNS = [
    'log_gpp',
    'log_er',
    'logit_ar1',
    'log_npp',
    'npp_scaled',
    'log_area',
    'log_width',
    'nep',
    'temp_K',
    'temp_arrhenius'
    ]

# Raw columns carried unchanged into the model-ready table
PASSTHROUGH_COLUMNS = {
    SITE_COL: 'site',
    YEAR_COL: 'year',
    LIGHT_COL: 'light',
    DISCH_CV_COL: 'disch_cv',
    DISCH_AMP_COL: 'disch_amp',
    DISCH_SKEW_COL: 'disch_skew',
    LAT_COL: 'lat',
    TEMP_COL: 'temp_C'
    }

# semopy.calc_stats columns reported for every candidate
FIT_METRICS = ["DoF", "chi2", "chi2 p-value", "CFI", "TLI", "AGFI", "RMSEA", "AIC", "BIC", "LogLik"]

# Conventional chi-square p-value threshold, used for reporting only
CHI2_ALPHA = 0.05

# Model variable names -> model-ready table columns
MODEL_ALIASES = {
    'gpp': 'log_gpp',
    'er': 'log_er',
    'ar1': 'logit_ar1',
    'mod_npp': 'log_npp',
    'area': 'log_area',
    'width': 'log_width',
    'temp': 'temp_arrhenius',
    'skew': 'disch_skew'
    }

# Nested candidate models, evaluated in this order. Each one adds a single path
# to the one before it.
MODEL_CATALOG = {

    "01_Light_Flow_Base": """
        # Wider channels are less shaded
        light ~ width

        # Autotrophy: light and flow disturbance
        gpp ~ light + skew

        # Respiration fuelled by in-stream and terrestrial carbon
        er ~ gpp + mod_npp
    """,

    "02_NPP_Dampens_Flow": """
        light ~ width
        gpp ~ light + skew
        er ~ gpp + mod_npp

        # Riparian productivity buffers hydrologic extremes
        skew ~ mod_npp
    """,

    "03_Temperature_ER": """
        light ~ width
        gpp ~ light + skew
        er ~ gpp + mod_npp + temp
        skew ~ mod_npp
    """,

    "04_Temperature_GPP": """
        light ~ width
        gpp ~ light + skew + temp
        er ~ gpp + mod_npp + temp
        skew ~ mod_npp
    """,

    "05_Watershed_Size": """
        width ~ area
        light ~ width
        gpp ~ light + skew + temp
        er ~ gpp + mod_npp + temp
        skew ~ mod_npp
    """
    }

PRETTY_NAMES = {
    "log_gpp": "GPP (log)",
    "log_er": "ER (log)",
    "logit_ar1": "Discharge AR1 (logit)",
    "log_npp": "MODIS NPP (log)",
    "npp_scaled": "MODIS NPP (kg C)",
    "log_area": "Watershed area (log)",
    "log_width": "Width (log)",
    "nep": "NEP",
    "temp_K": "Temperature (K)",
    "temp_arrhenius": "Temperature (1/kT)",
    "light": "Light (PAR sum)",
    "disch_cv": "Discharge CV",
    "disch_amp": "Discharge amplitude",
    "disch_skew": "Discharge skewness",
    "lat": "Latitude",
    "temp_C": "Temperature (°C)",
    "gpp": "GPP",
    "er": "ER",
    "ar1": "Discharge AR1",
    "mod_npp": "MODIS NPP",
    "area": "Watershed area",
    "width": "Width",
    "temp": "Temperature (1/kT)",
    "skew": "Discharge skewness"
    }
