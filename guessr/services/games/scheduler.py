from guessr import socketio


def schedule_idle_sweep(app, server) -> None:
    """Start the periodic idle-room sweep for ``server``.

    - No-ops in TESTING mode (tests call ``server.sweep_idle`` directly)
    - Ensures a single sweeper per server, even when first connects race
    - Sleeps ROOM_SWEEP_INTERVAL_SEC between passes and stops once the server is closed
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SWEEP_IN_TESTS'):
        return
    with server.lock:
        if server.sweeper_started:
            return
        server.sweeper_started = True

    interval = int(app.config.get('ROOM_SWEEP_INTERVAL_SEC', 300))
    app.logger.info(f"[sweep-set] interval={interval}s idle_timeout={app.config.get('ROOM_IDLE_TIMEOUT_SEC')}s")

    def _worker():
        while not server.closed:
            socketio.sleep(interval)
            if server.closed:
                break
            try:
                server.sweep_idle()
            except Exception:
                app.logger.exception("[sweep-error] idle sweep failed")

    socketio.start_background_task(_worker)
