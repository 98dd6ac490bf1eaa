import logging

from flask import Flask, jsonify
from flask_cors import CORS

from routes import register_blueprints
from services import container


def _cors_origins(value):
    if not value or value.strip() == '*':
        return '*'
    return [origin.strip() for origin in value.split(',') if origin.strip()]


def create_app(config_object='config.Config', **clients):
    """
    Application factory.

    Keyword arguments (supabase_client, http_session, twilio_client) are
    passed through to the service container in place of config-built clients.
    """
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    CORS(
        app,
        resources={r"/api/*": {"origins": _cors_origins(app.config.get('CORS_ORIGINS'))}},
        supports_credentials=True
    )

    # Build Supabase / SignNow / Twilio clients and the contract services
    container.init_app(app, **clients)

    # Register blueprints
    register_blueprints(app)

    @app.route('/health')
    def health():
        services = container.get_services()
        return jsonify({
            'status': 'ok',
            'supabase': services.repository.is_configured(),
            'signnow': services.signnow.is_configured(),
            'twilio': services.sms.is_configured()
        })

    return app


if __name__ == '__main__':
    from dotenv import load_dotenv

    load_dotenv()
    app = create_app()
    app.run(host='0.0.0.0', port=5005, debug=True)
