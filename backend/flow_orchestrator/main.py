# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
FastAPI app - Flow execution and Champion vs Challenge API
"""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flow_orchestrator import __version__
from flow_orchestrator.api import champion_challenge, flows
from flow_orchestrator.core.config import Config, get_config
from flow_orchestrator.core.logging import get_api_logger
from flow_orchestrator.flow.node_executor import NodeExecutor
from flow_orchestrator.flow.registry import FunctionRegistry
from flow_orchestrator.flow.walker import FlowGraphWalker
from flow_orchestrator.flow_store import FlowStore
from flow_orchestrator.legacy import LegacyEngineClient
from flow_orchestrator.orchestrator import ExecutionOrchestrator
from flow_orchestrator.providers import AnthropicProvider

# Load environment variables from .env file (local development)
_env_path = Path.cwd() / ".env"
if _env_path.exists():
    load_dotenv(_env_path)

logger = get_api_logger()


def build_orchestrator(
    config: Config,
    flow_store: Optional[FlowStore] = None,
    function_registry: Optional[FunctionRegistry] = None,
    llm_provider=None,
) -> ExecutionOrchestrator:
    """Wire the engine from configuration"""
    if flow_store is None:
        flow_store = FlowStore()
        flow_store.load_directory(config.flows_path)

    if llm_provider is None:
        api_key = config.get_anthropic_api_key()
        if api_key:
            llm_provider = AnthropicProvider(api_key=api_key)
        else:
            logger.warning("ANTHROPIC_API_KEY not set. LLM nodes will fail.")

    node_executor = NodeExecutor(
        function_registry=function_registry,
        llm_provider=llm_provider,
        default_llm_model=config.llm_default_model,
        default_max_tokens=config.llm_max_tokens,
        http_timeout=config.http_timeout,
    )

    legacy_client = None
    if config.legacy_engine_url:
        legacy_client = LegacyEngineClient(
            config.legacy_engine_url,
            timeout=config.http_timeout,
            poll_interval=config.legacy_poll_interval,
            poll_timeout=config.legacy_poll_timeout,
        )

    return ExecutionOrchestrator(
        flow_store=flow_store,
        walker=FlowGraphWalker(node_executor, config),
        legacy_client=legacy_client,
        config=config,
    )


def create_app(
    config: Optional[Config] = None,
    orchestrator: Optional[ExecutionOrchestrator] = None,
) -> FastAPI:
    """Create the API app; the orchestrator is kept in app.state"""
    config = config or get_config()

    app = FastAPI(
        title="Flow Orchestrator",
        description="Flow execution and Champion vs Challenge comparison",
        version=__version__,
    )

    # CORS for frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.orchestrator = orchestrator or build_orchestrator(config)

    app.include_router(champion_challenge.router)
    app.include_router(flows.router)

    @app.get("/health")
    async def health():
        return {"status": "healthy", "version": __version__}

    @app.on_event("shutdown")
    async def shutdown():
        await app.state.orchestrator.close()

    return app


if __name__ == "__main__":
    import uvicorn

    config = get_config()
    uvicorn.run(create_app(config), host=config.host, port=config.port)
