"""
Huey queue for Telão background work.

A SQLite file next to the application database holds the queue; the
projector console runs on a single machine, so no broker is needed.
HUEY_IMMEDIATE=1 executes tasks inline with in-memory storage (tests).

Consumer:
    python run_worker.py
    huey_consumer huey_config.huey -w 2 -k thread
"""
import logging
import os
from pathlib import Path
from huey import SqliteHuey

logging.basicConfig(
    level=logging.INFO,
    format='[%(asctime)s] %(levelname)s:%(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

HUEY_DB_PATH = Path(os.environ.get('HUEY_DB_PATH') or Path(__file__).parent / 'instance' / 'huey_queue.db')
HUEY_IMMEDIATE = os.environ.get('HUEY_IMMEDIATE', '').lower() in ('1', 'true', 'yes')

if not HUEY_IMMEDIATE:
    HUEY_DB_PATH.parent.mkdir(parents=True, exist_ok=True)

huey = SqliteHuey(
    name='telao-tasks',
    filename=str(HUEY_DB_PATH),
    immediate=HUEY_IMMEDIATE,
    utc=True,
)

# Registers the tasks; telao.tasks imports `huey` from this module
from telao import tasks  # noqa: F401, E402

CONSUMER_CONFIG = {
    'workers': int(os.environ.get('HUEY_WORKERS', 2)),
    'worker_type': 'thread',
    'initial_delay': 0.1,
    'backoff': 1.15,
    'max_delay': 1.0,
    'periodic': True,  # daily login audit purge
    'check_worker_health': True,
    'health_check_interval': 10,
}
