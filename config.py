import os
from datetime import timedelta

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'star-seekers-secret-key'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///starhub.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Session cookie
    SESSION_COOKIE_NAME = os.environ.get('SESSION_COOKIE_NAME', 'star-seekers-session')
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    PERMANENT_SESSION_LIFETIME = timedelta(days=int(os.environ.get('SESSION_LIFETIME_DAYS', '7')))
    # Credits economy
    STARTING_CREDITS = int(os.environ.get('STARTING_CREDITS', '10'))
    GAME_COST = int(os.environ.get('GAME_COST', '1'))
    TRANSACTION_HISTORY_LIMIT = int(os.environ.get('TRANSACTION_HISTORY_LIMIT', '100'))
    LEADERBOARD_LIMIT = int(os.environ.get('LEADERBOARD_LIMIT', '50'))
    # Frontend (redirect targets and CORS)
    FRONTEND_URL = os.environ.get('FRONTEND_URL', 'http://localhost:5173')
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173'
    ).split(',') if o.strip()]
    # Stripe. Test mode credits purchases without calling Stripe.
    STRIPE_SECRET_KEY = os.environ.get('STRIPE_SECRET_KEY', '')
    STRIPE_WEBHOOK_SECRET = os.environ.get('STRIPE_WEBHOOK_SECRET', '')
    STRIPE_TEST_MODE = os.environ.get('STRIPE_TEST_MODE', '0') == '1'
    # Discord OAuth
    DISCORD_CLIENT_ID = os.environ.get('DISCORD_CLIENT_ID', '')
    DISCORD_CLIENT_SECRET = os.environ.get('DISCORD_CLIENT_SECRET', '')
    DISCORD_CALLBACK_URL = os.environ.get('DISCORD_CALLBACK_URL', 'http://localhost:5000/api/auth/discord/callback')
