"""PredLedger - binary prediction-market settlement and position accounting."""

__version__ = "0.1.0"
