# src/sol_gateway/__main__.py
import asyncio
import os
import signal
import sys
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
from fastapi import FastAPI
from hypercorn.asyncio import serve
from hypercorn.config import Config as HyperConfig
import traceback

from sol_gateway.core.device_registry import DeviceRegistry
from sol_gateway.core.dispatcher import CommandDispatcher
from sol_gateway.core.assistant import Assistant
from sol_gateway.core.heartbeat import PresenceMonitor
from sol_gateway.core.communication_service import CommunicationService
from sol_gateway.adapters.gemini import GeminiDirectiveGenerator
from sol_gateway.api.routes import create_app
from sol_gateway.utils.logging import setup_logging, get_logger
from sol_gateway.utils.exceptions import ConfigurationError, InitializationError

DEFAULT_CONFIG_PATH = "src/config/default.yml"

class AppState:
    """Holds application state and components"""
    def __init__(self):
        self.registry: Optional[DeviceRegistry] = None
        self.communication_service: Optional[CommunicationService] = None
        self.dispatcher: Optional[CommandDispatcher] = None
        self.assistant: Optional[Assistant] = None
        self.presence_monitor: Optional[PresenceMonitor] = None

class ConfigManager:
    """Manages configuration loading and validation"""

    @staticmethod
    def load_config(config_path: str) -> Dict[str, Any]:
        """Load and validate configuration from YAML file"""
        try:
            with open(config_path, 'r') as f:
                config = yaml.safe_load(f)
                if config is None:
                    raise ConfigurationError("Configuration file is empty or incorrectly formatted")

                # Validate required configuration sections
                required_sections = ['api', 'communication', 'clients', 'dispatcher', 'logging']
                missing_sections = [section for section in required_sections if section not in config]
                if missing_sections:
                    raise ConfigurationError(f"Missing required configuration sections: {', '.join(missing_sections)}")

                return config
        except yaml.YAMLError:
            raise ConfigurationError(f"Error parsing configuration file: {traceback.format_exc()}")
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {config_path}")

class APIServer:
    """Handles API server initialization and management"""

    def __init__(self, config: Dict[str, Any], shutdown_event: asyncio.Event, app_state: AppState):
        self.config = config
        self.shutdown_event = shutdown_event
        self.logger = get_logger("API Server")
        self.app: Optional[FastAPI] = None
        self.app_state = app_state

    async def initialize(self) -> FastAPI:
        """Initialize FastAPI application with routes"""
        try:
            self.app = create_app(self.app_state)
            return self.app
        except Exception:
            raise InitializationError(f"Failed to initialize API server: {traceback.format_exc()}")

    async def start(self):
        """Start the API server"""
        if not self.app:
            await self.initialize()

        hypercorn_config = HyperConfig()
        try:
            host = self.config['api']['host']
            port = self.config['api']['port']
            hypercorn_config.bind = [f"{host}:{port}"]

            async def shutdown_trigger():
                await self.shutdown_event.wait()
                return

            self.logger.info(f"Starting API server on {host}:{port}")
            await serve(self.app, hypercorn_config, shutdown_trigger=shutdown_trigger)
        except Exception:
            self.logger.error(f"Failed to start API server: {traceback.format_exc()}")
            raise

class SolGatewayApp:
    """Main Sol Gateway application class"""

    def __init__(self, config_path: str):
        self.logger = get_logger("Main App")
        try:
            self.config = ConfigManager.load_config(config_path)
            setup_logging(self.config.get('logging', {}))
        except ConfigurationError:
            self.logger.error(f"Configuration error: {traceback.format_exc()}")
            sys.exit(1)

        # Initialize components
        self.shutdown_event = asyncio.Event()
        self.app_state = AppState()
        self.api_server = APIServer(self.config, self.shutdown_event, self.app_state)

    def _create_generator(self) -> Optional[GeminiDirectiveGenerator]:
        assistant_config = dict(self.config.get('assistant') or {})
        if not assistant_config.get('enabled', True):
            self.logger.warning("Assistant disabled, /api/chat will answer 503")
            return None
        provider = assistant_config.get('provider', 'gemini')
        if provider != 'gemini':
            raise ConfigurationError(f"Unknown assistant provider: {provider}")
        assistant_config.setdefault('api_key', os.environ.get('GEMINI_API_KEY'))
        return GeminiDirectiveGenerator(assistant_config)

    async def initialize_components(self):
        """Initialize all application components"""
        try:
            self.app_state.registry = DeviceRegistry.from_config(
                self.config['clients'],
                self.config.get('registry')
            )

            self.app_state.communication_service = CommunicationService(self.config)
            await self.app_state.communication_service.initialize()

            self.app_state.dispatcher = CommandDispatcher(
                self.app_state.registry,
                self.app_state.communication_service,
                self.config['dispatcher']
            )

            generator = self._create_generator()
            if generator:
                self.app_state.assistant = Assistant(
                    generator,
                    self.app_state.dispatcher,
                    self.config.get('assistant')
                )

            self.app_state.presence_monitor = PresenceMonitor(self.config, self.app_state.registry)

            self.logger.info("All components initialized successfully")
        except Exception:
            raise InitializationError(f"Failed to initialize components: {traceback.format_exc()}")

    async def shutdown(self):
        """Gracefully shutdown all components"""
        self.logger.info("Initiating shutdown sequence")
        try:
            if self.app_state.presence_monitor:
                await self.app_state.presence_monitor.stop()
            if self.app_state.assistant:
                await self.app_state.assistant.close()
            if self.app_state.communication_service:
                await self.app_state.communication_service.shutdown()

            self.shutdown_event.set()
            self.logger.info("Shutdown completed successfully")
        except Exception:
            self.logger.error(f"Error during shutdown: {traceback.format_exc()}")
            self.shutdown_event.set()

    def handle_signals(self):
        """Set up signal handlers for graceful shutdown"""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            self.logger.info(f"Received signal {signum}")
            asyncio.create_task(self.shutdown())

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, signal_handler, sig)

    async def run(self):
        """Main application entry point"""
        try:
            self.handle_signals()
            await self.initialize_components()

            # Start all services
            await asyncio.gather(
                self.app_state.presence_monitor.start_monitoring(),
                self.api_server.start()
            )
        except InitializationError:
            self.logger.error(f"Initialization error: {traceback.format_exc()}")
            await self.shutdown()
            sys.exit(1)
        except Exception:
            self.logger.error(f"Unexpected error: {traceback.format_exc()}")
            await self.shutdown()
            sys.exit(1)

def create_default_config(config_path: Path):
    """Create default configuration file if it doesn't exist"""
    if not config_path.exists():
        example_config = """
api:
  host: "0.0.0.0"
  port: 8000

communication:
  mqtt:
    enabled: true
    host: "localhost"
    port: 1883
    client_id: "sol_gateway"
    publish_qos: 1
    connection_timeout: 30

dispatcher:
  mode: "registry"
  direct_categories: ["led"]
  sink_timeout: 5
  topics:
    led: "device/led"
    light: "device/light"
    fan: "device/fan"
    security: "device/security"

assistant:
  enabled: true
  provider: "gemini"
  model: "gemini-2.0-flash"
  timeout: 30
  max_history: 10

registry:
  offline_after: null
  sweep_interval: 30

clients:
  - id: "esp32_livingroom"
    name: "Living Room Controller"
    location: "Living Room"
    authKey: "change-me"
    firmware: "1.0.0"
    devices:
      - id: "light1"
        name: "Main Light"
        type: "light"
        features:
          hasTimer: true
      - id: "light2"
        name: "Reading Light"
        type: "light"
        features:
          hasTimer: true

logging:
  level: "INFO"
  file: "logs/sol_gateway.log"
  max_size: 10
  backup_count: 5
  format: "%(asctime)s - %(name)s - [%(levelname)s] - %(message)s"
"""
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(example_config)
        print(f"Created default config at {config_path}")

def main():
    """Application entry point"""
    config_path = Path(os.environ.get("SOL_GATEWAY_CONFIG", DEFAULT_CONFIG_PATH))
    create_default_config(config_path)

    app = SolGatewayApp(str(config_path))
    asyncio.run(app.run())

if __name__ == "__main__":
    main()
