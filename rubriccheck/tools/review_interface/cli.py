"""Launch the rubric check JSON API for a browser front end."""

import argparse
import logging
import webbrowser
from threading import Timer

from rubriccheck.grading.fingerprint import FingerprintCache
from rubriccheck.grading.grader import RubricGrader, create_store
from rubriccheck.libs.config_loader import ConfigType, get_config, load_all_configs
from .app import create_app, run_server
from .drafts import DraftStore
from .session import SessionController

LOG = logging.getLogger(__name__)


def build_parser(configs: ConfigType) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Serve the rubric check API: grade work against a rubric and review the verdicts',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve on server.host / server.port from config
  rubriccheck-review

  # Public bind, different model, cache next to the coursework
  rubriccheck-review --host 0.0.0.0 --port 8080 -m gpt-4o --cache-dir ./cache --no-browser
        """
    )
    parser.add_argument('--host', default=get_config('server.host', configs, default='127.0.0.1'),
                        help='Host to bind to (default: server.host from config)')
    parser.add_argument('--port', type=int, default=get_config('server.port', configs, default=5000),
                        help='Port to bind to (default: server.port from config)')
    parser.add_argument('--model', '-m', help='OpenAI model to use (overrides openai.model)')
    parser.add_argument('--cache-dir',
                        help='Directory for cached results and drafts (overrides grading.cache_dir)')
    parser.add_argument('--no-draft', action='store_true',
                        help='Do not save or restore the in-progress draft')
    parser.add_argument('--no-browser', action='store_true', help='Do not automatically open browser')
    parser.add_argument('--debug', action='store_true', help='Run Flask in debug mode')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    return parser


def apply_overrides(configs: ConfigType, args: argparse.Namespace) -> ConfigType:
    """Fold command line overrides into the loaded configuration."""
    if args.model:
        configs.setdefault('openai', {})['model'] = args.model
    if args.cache_dir:
        configs.setdefault('grading', {})['cache_dir'] = args.cache_dir
    return configs


def build_controller(configs: ConfigType, keep_drafts: bool = True) -> SessionController:
    """Wire the grader, its cache store and the draft store into one session."""
    store = create_store(configs)
    return SessionController(
        RubricGrader(configs, cache=FingerprintCache(store)),
        drafts=DraftStore(store) if keep_drafts else None,
        cooldown_seconds=get_config('grading.quota_cooldown_seconds', configs, default=60),
        min_evidence_length=get_config('evidence.min_length', configs, default=5),
    )


def main(argv=None):
    configs = load_all_configs()
    args = build_parser(configs).parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    LOG.info("Initializing rubric check session...")
    controller = build_controller(apply_overrides(configs, args), keep_drafts=not args.no_draft)
    if controller.has_stored_draft():
        LOG.info("A saved draft is available; POST /api/draft/restore to bring it back")
    create_app(controller)

    url = f"http://{args.host}:{args.port}/api/state"
    if args.no_browser:
        LOG.info("Server will be available at %s", url)
    else:
        LOG.info("Opening browser at %s", url)
        Timer(1.5, webbrowser.open, args=(url,)).start()

    try:
        run_server(host=args.host, port=args.port, debug=args.debug)
    except KeyboardInterrupt:
        LOG.info("Server stopped")


if __name__ == '__main__':
    main()
