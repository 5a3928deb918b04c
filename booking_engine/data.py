# booking_engine/data.py

from datetime import time

# Weekly hours created for a new provider at onboarding (0=Mon ... 6=Sun)
DEFAULT_WEEKLY_HOURS = {
    0: (time(9, 0), time(17, 0), True),
    1: (time(9, 0), time(17, 0), True),
    2: (time(9, 0), time(17, 0), True),
    3: (time(9, 0), time(17, 0), True),
    4: (time(9, 0), time(17, 0), True),
    5: (time(9, 0), time(17, 0), False),
    6: (time(9, 0), time(17, 0), False),
}
