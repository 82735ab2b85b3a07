"""Run the expired refresh token reaper as a standalone process."""

import logging
import time

from blogauth.services.token_reaper import token_reaper


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    token_reaper.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        token_reaper.stop()


if __name__ == "__main__":
    main()
