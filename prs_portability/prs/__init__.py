"""Polygenic score construction, heterogeneity and calibration."""
