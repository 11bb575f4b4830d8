import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///puzzz.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Phase timers (seconds)
    COUNTDOWN_DURATION_SEC = int(os.environ.get('COUNTDOWN_DURATION_SEC', '3'))
    BREAK_DURATION_SEC = int(os.environ.get('BREAK_DURATION_SEC', '5'))
    CHALLENGE_COUNT = int(os.environ.get('CHALLENGE_COUNT', '10'))
    PARANOIA_TURN_DURATION_SEC = int(os.environ.get('PARANOIA_TURN_DURATION_SEC', '30'))
    PARANOIA_REVEAL_DURATION_SEC = int(os.environ.get('PARANOIA_REVEAL_DURATION_SEC', '8'))
    ODD_ONE_OUT_ANSWER_DURATION_SEC = int(os.environ.get('ODD_ONE_OUT_ANSWER_DURATION_SEC', '60'))
    ODD_ONE_OUT_VOTE_DURATION_SEC = int(os.environ.get('ODD_ONE_OUT_VOTE_DURATION_SEC', '60'))
    COUP_WINDOW_DURATION_SEC = int(os.environ.get('COUP_WINDOW_DURATION_SEC', '10'))
    WOULD_YOU_RATHER_VOTE_DURATION_SEC = int(os.environ.get('WOULD_YOU_RATHER_VOTE_DURATION_SEC', '30'))
    # Minimum players for games that do not set their own
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '2'))
    # Idle rooms older than this are removed by `flask rooms-prune`
    ROOM_TTL_SEC = int(os.environ.get('ROOM_TTL_SEC', '28800'))
    # Read-modify-write attempts before an intent is dropped
    STORE_MAX_RETRIES = int(os.environ.get('STORE_MAX_RETRIES', '5'))
    # Optional: debounce player intents (ms). 0 disables.
    CONTROLLER_DEBOUNCE_MS = int(os.environ.get('CONTROLLER_DEBOUNCE_MS', '0'))
    # Optional: heartbeat interval for timer worker logs (sec). 0 disables.
    TIMER_HEARTBEAT_SEC = int(os.environ.get('TIMER_HEARTBEAT_SEC', '0'))
    # Socket disconnect grace before a player counts as departed
    DEPARTURE_GRACE_SEC = float(os.environ.get('DEPARTURE_GRACE_SEC', '2.0'))
