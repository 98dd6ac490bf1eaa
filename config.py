import os


class Config:
    # Environment
    FLASK_ENV = os.getenv('FLASK_ENV', 'development')

    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Comma-separated list, or * for any origin
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', '*')

    # Supabase configuration (leave unset for demo mode / local store only)
    SUPABASE_URL = os.getenv('SUPABASE_URL')
    SUPABASE_KEY = os.getenv('SUPABASE_KEY') or os.getenv('SUPABASE_SERVICE_KEY')
    SIGNED_DOCUMENTS_BUCKET = os.getenv('SIGNED_DOCUMENTS_BUCKET', 'signed-documents')

    # SignNow configuration (no API key = mock dispatch)
    SIGNNOW_API_KEY = os.getenv('SIGNNOW_API_KEY')
    SIGNNOW_API_URL = os.getenv('SIGNNOW_API_URL', 'https://api.signnow.com')
    SIGNNOW_SIGNER_ROLE = os.getenv('SIGNNOW_SIGNER_ROLE')
    SENDER_EMAIL = os.getenv('SENDER_EMAIL')

    # Twilio configuration (no credentials = mock SMS)
    TWILIO_ACCOUNT_SID = os.getenv('TWILIO_ACCOUNT_SID')
    TWILIO_AUTH_TOKEN = os.getenv('TWILIO_AUTH_TOKEN')
    TWILIO_PHONE_NUMBER = os.getenv('TWILIO_PHONE_NUMBER')

    # Templates and local data
    TEMPLATES_DIR = os.getenv('TEMPLATES_DIR', 'pdfs')
    CONTRACT_CONFIG_PATH = os.getenv('CONTRACT_CONFIG_PATH')
    LOCAL_STORE_PATH = os.getenv('LOCAL_STORE_PATH', 'data/local_store.json')


class TestingConfig(Config):
    TESTING = True
    LOG_LEVEL = 'DEBUG'

    SUPABASE_URL = None
    SUPABASE_KEY = None
    SIGNNOW_API_KEY = None
    TWILIO_ACCOUNT_SID = None
    TWILIO_AUTH_TOKEN = None
    TWILIO_PHONE_NUMBER = None

    # In-memory local store
    LOCAL_STORE_PATH = None
