#!/usr/bin/env python
"""
Background worker: gallery thumbnails and the daily login audit purge.

    python run_worker.py
"""
import logging
import sys

# before huey_config, which calls basicConfig itself
logging.basicConfig(
    level=logging.INFO,
    format='[%(asctime)s] %(levelname)s:%(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
    stream=sys.stdout,
)

from huey.consumer import Consumer  # noqa: E402
from huey.consumer_options import ConsumerConfig  # noqa: E402
from huey_config import huey, CONSUMER_CONFIG, HUEY_DB_PATH  # noqa: E402

logger = logging.getLogger('telao.worker')


if __name__ == '__main__':
    options = ConsumerConfig(verbose=True, **CONSUMER_CONFIG)
    options.validate()
    logger.info(f"Telão worker: {CONSUMER_CONFIG['workers']} thread(s), queue {HUEY_DB_PATH}")
    Consumer(huey, **options.values).run()
