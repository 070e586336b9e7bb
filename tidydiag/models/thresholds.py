"""
Diagnostic threshold constants for linear-model fortification.

Citations:
- Durbin, J. & Watson, G.S. (1951). Testing for serial correlation in
  least squares regression. Biometrika, 38(1/2), 159-177.
  Bounds [1.0, 3.0] are conservative (symmetric around 2.0).
- Jarque, C.M. & Bera, A.K. (1987). A test for normality.
  Standard alpha = 0.05.
- Cook, R.D. (1977). Detection of influential observations in linear
  regression. Technometrics, 19(1), 15-18.
  Original guideline: D > 1.0 suggests high influence; 4/n is the
  common screening rule.
- Hoaglin, D.C. & Welsch, R.E. (1978). The hat matrix in regression and
  ANOVA. The American Statistician, 32(1), 17-22. Leverage > 2p/n.
"""

# Standardized residual threshold for outlier detection.
OUTLIER_Z_THRESHOLD = 2.0

# Durbin-Watson statistic bounds for autocorrelation detection.
# DW < low → positive autocorrelation; DW > high → negative autocorrelation.
DW_WARNING_LOW = 1.0
DW_WARNING_HIGH = 3.0

# Jarque-Bera test p-value threshold for residual normality.
JB_P_THRESHOLD = 0.05

# Cook's distance: absolute threshold and screening numerator (4/n).
COOKS_D_THRESHOLD = 1.0
COOKS_D_SCREEN_NUMERATOR = 4.0

# High leverage when hat value exceeds LEVERAGE_MULTIPLIER · p / n.
LEVERAGE_MULTIPLIER = 2.0

# R-squared threshold below which model fit is considered poor.
R_SQUARED_WARNING = 0.5
