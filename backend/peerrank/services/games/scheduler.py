import time

from peerrank import db, socketio
from .lifecycle import sweep_expired_games


_sweeper_started = False


def run_sweep(app) -> int:
    """Run one expiry sweep inside an app context; returns games completed."""
    with app.app_context():
        try:
            completed = sweep_expired_games()
        finally:
            db.session.remove()
    return len(completed)


def start_expiry_sweeper(app) -> bool:
    """Start the background loop that completes expired games.

    - No-ops in TESTING mode or when SWEEP_INTERVAL_SEC is 0
    - Starts at most one loop per process
    - An external cron hitting /api/cron/complete-games works alongside it;
      the sweep is idempotent
    """
    global _sweeper_started
    interval = int(app.config.get('SWEEP_INTERVAL_SEC', 60))
    if app.config.get('TESTING') or interval <= 0 or _sweeper_started:
        return False
    _sweeper_started = True

    def _worker(delay: int):
        heartbeat = bool(app.config.get('SWEEP_HEARTBEAT'))
        while True:
            time.sleep(delay)
            try:
                count = run_sweep(app)
            except Exception:
                app.logger.exception("[sweep-error] expiry sweep failed; retrying next tick")
                continue
            if heartbeat:
                app.logger.info(f"[sweep-heartbeat] interval={delay}s completed={count}")

    app.logger.info(f"[sweep-start] interval={interval}s")
    socketio.start_background_task(_worker, interval)
    return True
