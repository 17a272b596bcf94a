#!/usr/bin/env python3
"""
Telão server entry point.

    python run.py                  # API only, worker started separately
    python run.py --standalone     # API + embedded Huey consumer (single box)

WSGI servers import `app` from here:
    gunicorn -w 4 -b 0.0.0.0:5000 'run:app'
"""
import logging
import os
from telao import create_app

logging.basicConfig(
    level=logging.INFO,
    format='[%(asctime)s] %(levelname)s:%(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
logger = logging.getLogger('telao.run')

config_name = os.environ.get('FLASK_ENV', 'development')
if config_name == 'testing':
    # in-memory database, nothing would survive a restart
    config_name = 'development'

app = create_app(config_name)


def start_embedded_consumer(workers=None):
    """Run the Huey scheduler and workers as daemon threads of this process.

    Consumer.start() installs signal handlers, which only works on the main
    thread, so the threads are started by hand. A watchdog thread keeps
    calling Consumer.loop() to restart dead workers.

    Returns:
        The Consumer, kept on app.config['STANDALONE_CONSUMER']
    """
    import threading
    import time
    from huey.consumer import Consumer, ConsumerStopped
    from huey_config import huey, CONSUMER_CONFIG

    options = dict(CONSUMER_CONFIG)
    if workers:
        options['workers'] = workers
    consumer = Consumer(huey, **options)

    threads = [consumer.scheduler] + [thread for _, thread in consumer.worker_threads]
    for thread in threads:
        thread.daemon = True
        thread.start()

    def watchdog():
        last_check = time.time()
        while not consumer.stop_flag.is_set():
            try:
                last_check = consumer.loop(last_check)
            except ConsumerStopped:
                return
            except Exception:
                logger.error("Embedded consumer watchdog failed", exc_info=True)
            time.sleep(1)

    threading.Thread(target=watchdog, name='huey-watchdog', daemon=True).start()
    logger.info(f"Embedded Huey consumer running with {options['workers']} worker thread(s)")
    return consumer


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Telão projection server')
    parser.add_argument('--standalone', action='store_true',
                        help='also run the background worker in this process')
    parser.add_argument('--workers', type=int, default=None,
                        help='worker threads for --standalone (default: HUEY_WORKERS or 2)')
    parser.add_argument('--host', default=os.environ.get('HOST', '0.0.0.0'))
    parser.add_argument('--port', type=int, default=int(os.environ.get('PORT', 5000)))
    args = parser.parse_args()

    logger.info(
        f"Telão starting ({config_name}) on {args.host}:{args.port}, "
        f"database {app.config['SQLALCHEMY_DATABASE_URI'].split('@')[-1]}, "
        f"uploads {app.config['UPLOAD_FOLDER']}"
    )

    if args.standalone:
        app.config['STANDALONE_CONSUMER'] = start_embedded_consumer(args.workers)
        # a reloader child would start a second consumer
        app.run(host=args.host, port=args.port, debug=False, use_reloader=False)
    else:
        app.run(host=args.host, port=args.port, debug=app.config.get('DEBUG', False), threaded=True)


if __name__ == '__main__':
    main()
