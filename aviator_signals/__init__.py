"""
Aviator Signals: prediction signal ingestion, alerting and live dashboard service.
"""
