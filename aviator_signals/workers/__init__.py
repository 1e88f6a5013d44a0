from aviator_signals.workers.alert_worker import AlertWorker

__all__ = ["AlertWorker"]
