"""
Pipeline de collecte des prix concurrents (marketplaces SAR / USD).
"""
