import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Live room joined when a socket connects without a uniqueId
    TIKTOK_USERNAME = os.environ.get('TIKTOK_USERNAME', 'kayzedra')
    TIKTOK_SESSION_ID = os.environ.get('SESSIONID')
    TIKTOK_TARGET_IDC = os.environ.get('TT_TARGET_IDC')
    CONNECT_TIMEOUT_SEC = float(os.environ.get('CONNECT_TIMEOUT_SEC', '30'))
    # Broadcast cadence (ms); 100 -> 10 snapshots per second
    TICK_INTERVAL_MS = int(os.environ.get('TICK_INTERVAL_MS', '100'))
    STATISTIC_INTERVAL_SEC = int(os.environ.get('STATISTIC_INTERVAL_SEC', '5'))
    LIKE_COINS = float(os.environ.get('LIKE_COINS', '0.2'))
    BOSS_HIT_PHRASE = os.environ.get('BOSS_HIT_PHRASE', 'defeat the boss')
    # Reconnect policy (ms)
    RECONNECT_MAX_ATTEMPTS = int(os.environ.get('RECONNECT_MAX_ATTEMPTS', '10'))
    RECONNECT_INITIAL_MS = int(os.environ.get('RECONNECT_INITIAL_MS', '1000'))
    RECONNECT_CEILING_MS = int(os.environ.get('RECONNECT_CEILING_MS', '30000'))
    RECONNECT_RESET_CEILING_MS = int(os.environ.get('RECONNECT_RESET_CEILING_MS', '10000'))
    RECONNECT_JITTER_MS = int(os.environ.get('RECONNECT_JITTER_MS', '1000'))
    RECONNECT_STABLE_MS = int(os.environ.get('RECONNECT_STABLE_MS', '30000'))
    RECONNECT_UNKNOWN_DELAY_MS = int(os.environ.get('RECONNECT_UNKNOWN_DELAY_MS', '5000'))
    FORCE_RECONNECT_DELAY_MS = int(os.environ.get('FORCE_RECONNECT_DELAY_MS', '2000'))
