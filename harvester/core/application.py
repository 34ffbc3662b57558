"""Application class for Thread Harvester.

This module provides the main Application class that manages component
lifecycle, dependencies, and configuration. It is the central orchestration
point that initializes and coordinates all system components.

Components are initialized in dependency order; anything passed in to the
constructor is used as-is, which is how tests substitute the database engine
or the metrics registry. Startup failures are raised as InitializationError
(or a configuration exception) and are fatal; everything after startup is
handled by the scheduler's log-and-continue policy.
"""

import logging
import signal
import threading
from typing import Any, Optional

from harvester.api.exceptions import (
    ConfigException, DatabaseException, InitializationError, MissingConfigError
)
from harvester.api.issue_client import IssueClient
from harvester.api.qa_scraper import QAScraper
from harvester.cli.environment import Environment
from harvester.core.config import Config, format_duration
from harvester.core.scheduler import CollectionScheduler
from harvester.db.database import DatabaseManager
from harvester.db.record_store import RecordStore
from harvester.metrics.registry import MetricsRegistry
from harvester.metrics.server import start_metrics_server
from harvester.utils.connection_manager import ConnectionManager
from harvester.utils.error_handling import log_error
from harvester.utils.logging_config import LogManager
from harvester.utils.path_manager import PathManager


class Application:
    """Main application for Thread Harvester.

    Attributes:
        args: Command-line arguments for configuration
        components: Dictionary of initialized components
    """

    def __init__(self, args=None, log_manager: Optional[LogManager] = None,
                 environment: Optional[Environment] = None, **components):
        """Initialize the application with optional injected dependencies.

        Args:
            args: Parsed command-line arguments (``config``, ``log_level``)
            log_manager: LogManager instance for logging configuration and access
            environment: Environment instance for configuration and env variables
            **components: Pre-built components keyed by name (``config``,
                ``db_manager``, ``metrics``, ``connection_manager``, ...)
        """
        self.args = args
        self.components = dict(components)
        self.stop_event = threading.Event()

        if log_manager:
            self.components['log_manager'] = log_manager
            self.logger = log_manager.get_logger(__name__)
        else:
            self.logger = logging.getLogger(__name__)

        if environment:
            self.components['environment'] = environment

    def initialize(self, serve_metrics: bool = True):
        """Initialize all application components.

        Args:
            serve_metrics: Whether to start the metrics endpoint

        Returns:
            Self for method chaining

        Raises:
            InitializationError: When component initialization fails
            ConfigException: When configuration is missing or invalid
        """
        try:
            if 'environment' not in self.components:
                self.components['environment'] = Environment()

            if 'config' not in self.components:
                self._init_config()

            if 'log_manager' not in self.components:
                self._init_logging()

            if 'metrics' not in self.components:
                self.components['metrics'] = MetricsRegistry()

            if 'connection_manager' not in self.components:
                self.components['connection_manager'] = ConnectionManager()

            if 'db_manager' not in self.components:
                self._init_database()

            self.components.setdefault('record_store', RecordStore(self.components['db_manager']))

            self._init_sources()

            if 'scheduler' not in self.components:
                self._init_scheduler()

            if serve_metrics:
                self._init_metrics_server()

            self.logger.info("Application initialized successfully")
            return self
        except (InitializationError, ConfigException):
            raise
        except Exception as e:
            log_error(self.logger, "Application initialization failed", exception=e,
                      level="critical", component="Application", operation="initialize")
            raise InitializationError(f"Failed to initialize application: {e}") from e

    def _init_config(self):
        """Initialize configuration from the config file and environment."""
        config_file = getattr(self.args, "config", None)
        app_config = Config(config_file=config_file, environment=self.get_component('environment'),
                            logger=self.logger)

        log_level = getattr(self.args, "log_level", None)
        if log_level:
            app_config.set("logging.level", log_level)

        self.components['config'] = app_config

    def _init_logging(self):
        """Initialize logging system."""
        config = self.get_component('config')
        log_level = getattr(logging, str(config.get("logging.level", "INFO")).upper(), logging.INFO)

        logs_dir = None
        if config.get("logging.to_files", True):
            logs_dir = PathManager().get_logs_dir()

        log_manager = LogManager(
            log_level=log_level,
            logs_dir=logs_dir,
            enable_debug_file=bool(config.get("logging.enable_debug_file", False)),
        )
        self.components['log_manager'] = log_manager
        self.logger = log_manager.get_logger(__name__)
        self.logger.debug("Logging initialized")

    def _init_database(self):
        """Create the database manager and verify connectivity.

        Raises:
            MissingConfigError: When the database parameters are missing
            InitializationError: When the database cannot be reached
        """
        env = self.get_component('environment')
        config = self.get_component('config')

        database_url = env.get_database_url(sslmode=config.get("database.sslmode", "disable"))
        if not database_url:
            raise MissingConfigError("Database configuration is missing or invalid (DB_* or DATABASE_URL)")

        try:
            db_manager = DatabaseManager(database_url,
                                         connect_timeout=int(config.get("database.connect_timeout", 10)))
        except DatabaseException as e:
            raise InitializationError(f"Failed to create database manager: {e}") from e

        if not db_manager.test_connection():
            db_manager.cleanup()
            raise InitializationError("Could not connect to the database")

        self.components['db_manager'] = db_manager
        self.logger.info("Database connection established")

    def _init_sources(self):
        """Create the adapters the configured sources need."""
        config = self.get_component('config')
        metrics = self.get_component('metrics')
        connection_manager = self.get_component('connection_manager')

        if config.has_issue_sources() and 'issue_client' not in self.components:
            token = self.get_component('environment').get_access_token()
            if not token:
                raise MissingConfigError("ACCESS_TOKEN is required when issue sources are configured")
            self.components['issue_client'] = IssueClient(
                token=token,
                metrics=metrics.issues,
                connection_manager=connection_manager,
                api_base_url=config.get("github_api.rest_base_url"),
                per_page=config.get("github_api.per_page"),
                timeout=config.get("github_api.timeout"),
            )

        if 'qa_scraper' not in self.components:
            self.components['qa_scraper'] = QAScraper(
                metrics=metrics.qa,
                connection_manager=connection_manager,
                site_root=config.get("qa.site_root"),
                timeout=config.get("qa.timeout"),
                answer_timeout=config.get("qa.answer_timeout"),
                answer_workers=config.get("qa.answer_workers"),
            )

    def _init_scheduler(self):
        """Create the collection scheduler for the configured matrix."""
        config = self.get_component('config')
        sources = config.get_sources()
        windows = config.get_windows()

        self.components['scheduler'] = CollectionScheduler(
            sources=sources,
            windows=windows,
            store=self.get_component('record_store'),
            metrics=self.get_component('metrics'),
            issue_client=self.components.get('issue_client'),
            qa_scraper=self.components.get('qa_scraper'),
            inter_source_interval=config.get("collection.inter_source_interval"),
            stop_event=self.stop_event,
        )
        self.logger.info(
            f"Configured {len(sources)} sources over windows "
            f"{', '.join(format_duration(w) for w in windows)}"
        )

    def _init_metrics_server(self):
        """Start the metrics endpoint.

        Raises:
            InitializationError: When the port cannot be bound
        """
        config = self.get_component('config')
        self.components['metrics_server'] = start_metrics_server(
            self.get_component('metrics'),
            port=config.get("metrics.port"),
            addr=config.get("metrics.addr", "0.0.0.0"),
        )

    def get_component(self, name: str) -> Any:
        """Get a component by name.

        Args:
            name: Component name

        Returns:
            The component, or None when it was never initialized
        """
        return self.components.get(name)

    def install_signal_handlers(self):
        """Stop the run on SIGINT or SIGTERM."""
        def _handle(signum, frame):
            self.logger.info(f"Received signal {signum}, stopping")
            self.stop_event.set()

        signal.signal(signal.SIGTERM, _handle)
        signal.signal(signal.SIGINT, _handle)

    def run(self, hold: bool = True) -> int:
        """Run the collection matrix, then hold until stopped.

        Args:
            hold: Whether to block after the matrix completes

        Returns:
            Exit code (0 once stopped)
        """
        scheduler = self.get_component('scheduler')
        summary = scheduler.run_matrix()
        if summary.errors:
            self.logger.warning(f"{len(summary.errors)} iterations reported errors")

        if hold:
            scheduler.hold()
        return 0

    def cleanup(self):
        """Release HTTP sessions, the metrics server and database connections."""
        server = self.components.get('metrics_server')
        if server:
            try:
                server[0].shutdown()
            except Exception as e:
                self.logger.warning(f"Error stopping metrics server: {e}")

        connection_manager = self.components.get('connection_manager')
        if connection_manager:
            connection_manager.clear_all_sessions()

        db_manager = self.components.get('db_manager')
        if db_manager:
            db_manager.cleanup()

        self.logger.debug("Application resources released")
