"""CLI interface for restprobe"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
import requests
import yaml
from pydantic import ValidationError

from restprobe.application.user_api_suite import UserApiSuite
from restprobe.domain.config import ApiConfig, AppConfig, RetryConfig
from restprobe.infrastructure.config.config_manager import ConfigManager, ConfigurationError
from restprobe.infrastructure.endpoints.users import UserEndpoints
from restprobe.infrastructure.fake_api import FakeUsersApi
from restprobe.infrastructure.http_client import TRANSPORT_ERRORS, ApiClient
from restprobe.infrastructure.retry import RetryError, RetryingRequestExecutor, RetryPolicy
from restprobe.infrastructure.site_checks import SiteChecker, SiteCheckError

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    logging.getLogger().setLevel(level)
    # urllib3 connection chatter is only useful when debugging
    logging.getLogger("urllib3").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _die(message: str, verbose: bool = False, exc: Optional[Exception] = None) -> None:
    """Exit with a user-friendly error message"""
    if exc is not None:
        logger.error(message, exc_info=verbose)
    else:
        logger.error(message)
    raise click.ClickException(message)


def _load_config(ctx: click.Context, base_url: Optional[str] = None) -> AppConfig:
    """Load configuration and apply CLI overrides

    Args:
        ctx: Click context holding global options
        base_url: Optional API base URL override

    Returns:
        Validated configuration
    """
    verbose = ctx.obj.get("verbose", False)
    try:
        config = ConfigManager(
            config_path=ctx.obj.get("config_path"),
            environment=ctx.obj.get("environment"),
        ).config
        if base_url:
            config.api = ApiConfig(**{**config.api.model_dump(), "base_url": base_url})
        retry_updates = {
            key: ctx.obj[key] for key in ("max_attempts", "delay_ms") if ctx.obj.get(key) is not None
        }
        if retry_updates:
            config.retry = RetryConfig(**{**config.retry.model_dump(), **retry_updates})
    except (ConfigurationError, ValidationError) as e:
        _die(str(e), verbose=verbose, exc=e)
    return config


def _parse_query(pairs: Tuple[str, ...]) -> dict:
    """Parse key=value query options"""
    query = {}
    for pair in pairs:
        if "=" not in pair:
            raise click.BadParameter(f"Expected key=value, got: {pair}", param_hint="--query")
        key, value = pair.split("=", 1)
        query[key] = value
    return query


def _offline_session(config: AppConfig) -> requests.Session:
    """Session whose API base URL is served by the in-memory users API"""
    session = requests.Session()
    session.mount(config.api.base_url, FakeUsersApi())
    return session


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to .restprobe.yml config file",
)
@click.option("--env", "environment", type=str, help="Environment profile (default: RESTPROBE_ENV or development)")
@click.option("--max-attempts", type=click.IntRange(min=1), help="Attempts per request. Overrides config.")
@click.option("--delay-ms", type=click.IntRange(min=0), help="Delay between attempts in ms. Overrides config.")
@click.pass_context
def cli(ctx, verbose: bool, config: Path, environment: str, max_attempts: int, delay_ms: int):
    """restprobe - API and website end-to-end checks"""
    ctx.ensure_object(dict)
    setup_logging(verbose)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["environment"] = environment
    ctx.obj["max_attempts"] = max_attempts
    ctx.obj["delay_ms"] = delay_ms


@cli.command("config")
@click.pass_context
def show_config(ctx):
    """Print the effective configuration."""
    config = _load_config(ctx)
    data = config.model_dump()
    if data["auth"].get("token"):
        data["auth"]["token"] = "***"
    click.echo(yaml.safe_dump(data, sort_keys=False))


@cli.command()
@click.argument("method", type=click.Choice(["GET", "POST", "PUT", "PATCH", "DELETE"], case_sensitive=False))
@click.argument("endpoint", type=str)
@click.option("--query", "-q", multiple=True, help="Query parameter as key=value (repeatable)")
@click.option("--data", "-d", type=str, help="JSON request body")
@click.option("--base-url", type=str, help="API base URL. Overrides config.")
@click.option("--offline", is_flag=True, help="Send to the built-in in-memory users API")
@click.pass_context
def request(ctx, method: str, endpoint: str, query: Tuple[str, ...], data: str, base_url: str, offline: bool):
    """Send one request through the retry policy.

    ENDPOINT: Path relative to the API root (e.g. /users/2)
    """
    verbose = ctx.obj.get("verbose", False)
    config = _load_config(ctx, base_url)

    body = None
    if data:
        try:
            body = json.loads(data)
        except ValueError as e:
            raise click.BadParameter(f"Invalid JSON: {e}", param_hint="--data") from e

    session = _offline_session(config) if offline else None
    client = ApiClient(config, session=session)
    try:
        response = client.request(method, endpoint, body=body, query_params=_parse_query(query) or None)
    except RetryError as e:
        _die(str(e), verbose=verbose, exc=e)
    finally:
        client.close()

    click.echo(f"{method.upper()} {response.url} -> {response.status_code} ({response.elapsed_ms:.0f}ms)")
    if response.body:
        click.echo(response.body)


@cli.command("users-suite")
@click.option("--base-url", type=str, help="API base URL. Overrides config.")
@click.option("--offline", is_flag=True, help="Run against the built-in in-memory users API")
@click.option("--scenario", "-s", multiple=True, help="Scenario name to run (repeatable, default: all)")
@click.pass_context
def users_suite(ctx, base_url: str, offline: bool, scenario: Tuple[str, ...]):
    """Run the users API CRUD scenarios."""
    verbose = ctx.obj.get("verbose", False)
    config = _load_config(ctx, base_url)
    session = _offline_session(config) if offline else None

    client = ApiClient(config, session=session)
    try:
        stats = UserApiSuite(UserEndpoints(client)).run(only=list(scenario) or None)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--scenario") from e
    except Exception as e:
        _die(f"Fatal error: {e}", verbose=verbose, exc=e)
    finally:
        client.close()

    click.echo("\n" + "=" * 80)
    click.echo("Users API Scenarios")
    click.echo("=" * 80)
    for result in stats["results"]:
        mark = "PASS" if result.passed else "FAIL"
        click.echo(f"[{mark}] {result.name}: {result.detail}")
    click.echo(f"\n{stats['passed']}/{stats['total']} scenarios passed")
    if stats["failed"]:
        sys.exit(1)


def _site_checker(ctx) -> SiteChecker:
    config = _load_config(ctx)
    executor = RetryingRequestExecutor(RetryPolicy.from_config(config.retry), retry_on=TRANSPORT_ERRORS)
    return SiteChecker(executor=executor, timeout=config.timeouts.read_ms / 1000.0)


def _report_checks(checks) -> None:
    broken = [c for c in checks if not c.ok]
    for check in checks:
        status = check.status_code if check.status_code is not None else check.error
        click.echo(f"{'OK  ' if check.ok else 'FAIL'} {status} {check.url}")
    click.echo(f"\n{len(checks) - len(broken)}/{len(checks)} URLs healthy")
    if broken:
        sys.exit(1)


@cli.command()
@click.argument("sitemap_url", type=str)
@click.option("--limit", type=click.IntRange(min=1), default=10, show_default=True, help="Max URLs to check")
@click.pass_context
def sitemap(ctx, sitemap_url: str, limit: int):
    """Check that sitemap URLs are reachable.

    SITEMAP_URL: URL of sitemap.xml
    """
    verbose = ctx.obj.get("verbose", False)
    checker = _site_checker(ctx)
    try:
        urls = checker.fetch_sitemap(sitemap_url)
    except (SiteCheckError, RetryError) as e:
        _die(str(e), verbose=verbose, exc=e)
    click.echo(f"Sitemap lists {len(urls)} URLs, checking {min(limit, len(urls))}")
    _report_checks(checker.check_urls(urls, limit=limit))


@cli.command()
@click.argument("page_url", type=str)
@click.option("--prefix", type=str, help="Only check links starting with this prefix")
@click.pass_context
def links(ctx, page_url: str, prefix: str):
    """Check that no link on a page leads to a 404.

    PAGE_URL: Page to scan for links
    """
    verbose = ctx.obj.get("verbose", False)
    checker = _site_checker(ctx)
    try:
        checks = checker.check_links(page_url, prefix=prefix)
    except (SiteCheckError, RetryError) as e:
        _die(str(e), verbose=verbose, exc=e)
    _report_checks(checks)


def main():
    """Main entry point"""
    cli(obj={})


if __name__ == "__main__":
    main()
