"""
Service wiring.

Builds the contract services from app config once, in the app factory,
and keeps them on `app.extensions['contracts']`. Routes get them back
with `get_services()`.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from flask import current_app

from services import supabase_storage
from services.contracts import (
    ContractCatalog,
    ContractRepository,
    ContractWorkflow,
    LocalStore,
    SignatureDispatcher,
    SignNowClient,
    StatusPoller,
    TemplateStore
)
from services.sms_service import SMSService

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'contracts'


@dataclass
class ContractServices:
    catalog: ContractCatalog
    templates: TemplateStore
    repository: ContractRepository
    signnow: SignNowClient
    dispatcher: SignatureDispatcher
    workflow: ContractWorkflow
    poller: StatusPoller
    sms: SMSService
    supabase: Optional[Any] = None


def build_services(
    config,
    supabase_client: Optional[Any] = None,
    http_session: Optional[Any] = None,
    twilio_client: Optional[Any] = None
) -> ContractServices:
    """
    Construct every service from a config mapping.

    Clients passed in explicitly are used as-is; otherwise they are
    created from the config values (or left unconfigured).
    """
    catalog = ContractCatalog.load(config.get('CONTRACT_CONFIG_PATH'))
    signer_role = config.get('SIGNNOW_SIGNER_ROLE') or catalog.signer_role
    catalog.signer_role = signer_role

    if supabase_client is None:
        supabase_client = supabase_storage.create_supabase_client(
            config.get('SUPABASE_URL'), config.get('SUPABASE_KEY')
        )

    local_store = LocalStore(config.get('LOCAL_STORE_PATH'))
    repository = ContractRepository(client=supabase_client, local_store=local_store)

    signnow = SignNowClient(
        api_key=config.get('SIGNNOW_API_KEY'),
        api_url=config.get('SIGNNOW_API_URL'),
        sender_email=config.get('SENDER_EMAIL'),
        signer_role=signer_role,
        session=http_session
    )

    templates = TemplateStore(Path(config.get('TEMPLATES_DIR') or 'pdfs'))
    dispatcher = SignatureDispatcher(signnow, repository, catalog)
    workflow = ContractWorkflow(catalog, templates, dispatcher, repository)
    poller = StatusPoller(
        signnow,
        repository,
        storage_client=supabase_client,
        bucket=config.get('SIGNED_DOCUMENTS_BUCKET') or supabase_storage.SIGNED_DOCUMENTS_BUCKET
    )
    sms = SMSService(
        account_sid=config.get('TWILIO_ACCOUNT_SID'),
        auth_token=config.get('TWILIO_AUTH_TOKEN'),
        from_number=config.get('TWILIO_PHONE_NUMBER'),
        client=twilio_client
    )

    logger.info(
        f"Contract services ready (supabase={'on' if repository.is_configured() else 'off'}, "
        f"signnow={'on' if signnow.is_configured() else 'mock'}, "
        f"twilio={'on' if sms.is_configured() else 'mock'})"
    )

    return ContractServices(
        catalog=catalog,
        templates=templates,
        repository=repository,
        signnow=signnow,
        dispatcher=dispatcher,
        workflow=workflow,
        poller=poller,
        sms=sms,
        supabase=supabase_client
    )


def init_app(app, **clients) -> ContractServices:
    services = build_services(app.config, **clients)
    app.extensions[EXTENSION_KEY] = services
    return services


def get_services() -> ContractServices:
    return current_app.extensions[EXTENSION_KEY]
