"""
Command-line interface for chain-insight.
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from chain_insight.chains.registry import HYPERLIQUID_MAINNET

DEFAULT_NETWORK_ID = HYPERLIQUID_MAINNET.chain_id


def _add_network_argument(parser):
    parser.add_argument(
        "--network-id", "-n",
        type=int,
        default=DEFAULT_NETWORK_ID,
        help=f"Chain id of the network (default: {DEFAULT_NETWORK_ID})"
    )


def _add_json_argument(parser):
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full JSON response"
    )


def _add_init_command(subparsers):
    """Add init command parser."""
    init_parser = subparsers.add_parser(
        "init",
        help="Initialize configuration and database",
        description="Write a default configuration file and create the database tables"
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite existing configuration"
    )
    init_parser.add_argument(
        "--db-url",
        type=str,
        help="Database URL (overrides config file)"
    )
    init_parser.add_argument(
        "--skip-db",
        action="store_true",
        help="Skip database initialization"
    )


def _add_validate_command(subparsers):
    """Add validate command parser."""
    validate_parser = subparsers.add_parser(
        "validate",
        help="Validate configuration",
        description="Validate configuration file and system setup"
    )
    validate_parser.add_argument(
        "--check-db",
        action="store_true",
        help="Also validate database connectivity"
    )


def _add_analyze_tx_command(subparsers):
    """Add analyze-tx command parser."""
    analyze_parser = subparsers.add_parser(
        "analyze-tx",
        help="Analyze a transaction",
        description="Fetch, analyze and format one transaction"
    )
    analyze_parser.add_argument(
        "tx_hash",
        type=str,
        help="Transaction hash (0x followed by 64 hex digits)"
    )
    _add_network_argument(analyze_parser)
    _add_json_argument(analyze_parser)


def _add_analyze_block_command(subparsers):
    """Add analyze-block command parser."""
    analyze_parser = subparsers.add_parser(
        "analyze-block",
        help="Analyze a block",
        description="Fetch, analyze and format one block"
    )
    analyze_parser.add_argument(
        "block",
        type=str,
        nargs="?",
        default="latest",
        help="Block number or 'latest' (default: latest)"
    )
    _add_network_argument(analyze_parser)
    _add_json_argument(analyze_parser)


def _add_recent_blocks_command(subparsers):
    """Add recent-blocks command parser."""
    recent_parser = subparsers.add_parser(
        "recent-blocks",
        help="List the most recent blocks",
        description="List the most recent indexed blocks of a network"
    )
    recent_parser.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Number of blocks (default: 10)"
    )
    _add_network_argument(recent_parser)
    _add_json_argument(recent_parser)


def _add_address_txs_command(subparsers):
    """Add address-txs command parser."""
    address_parser = subparsers.add_parser(
        "address-txs",
        help="List transactions of an address",
        description="List the most recent indexed transactions sent or received by an address"
    )
    address_parser.add_argument(
        "address",
        type=str,
        help="Address (0x followed by 40 hex digits)"
    )
    address_parser.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Number of transactions (default: 10)"
    )
    _add_network_argument(address_parser)
    _add_json_argument(address_parser)


def _add_address_risk_command(subparsers):
    """Add address-risk command parser."""
    risk_parser = subparsers.add_parser(
        "address-risk",
        help="Score the risk of an address",
        description="Score an address from its indexed transaction history"
    )
    risk_parser.add_argument(
        "address",
        type=str,
        help="Address (0x followed by 40 hex digits)"
    )
    _add_network_argument(risk_parser)
    _add_json_argument(risk_parser)


def _add_transfer_risk_command(subparsers):
    """Add transfer-risk command parser."""
    transfer_parser = subparsers.add_parser(
        "transfer-risk",
        help="Score the risk of a transfer between two addresses",
        description="Combine the risk of recipient and sender, weighting the recipient higher"
    )
    transfer_parser.add_argument(
        "to_address",
        type=str,
        help="Recipient address"
    )
    transfer_parser.add_argument(
        "--from",
        dest="from_address",
        type=str,
        help="Sender address"
    )
    transfer_parser.add_argument(
        "--amount",
        type=str,
        help="Transfer amount in native units"
    )
    _add_network_argument(transfer_parser)
    _add_json_argument(transfer_parser)


def _add_cache_stats_command(subparsers):
    """Add cache-stats command parser."""
    stats_parser = subparsers.add_parser(
        "cache-stats",
        help="Show analysis cache statistics",
        description="Run the given analyses through the cache and show its statistics"
    )
    stats_parser.add_argument(
        "--tx",
        action="append",
        default=[],
        metavar="TX_HASH",
        help="Transaction to analyze first (repeatable)"
    )
    stats_parser.add_argument(
        "--block",
        action="append",
        default=[],
        metavar="BLOCK",
        help="Block to analyze first (repeatable)"
    )
    stats_parser.add_argument(
        "--repeat",
        type=int,
        default=1,
        help="How many times each analysis is requested (default: 1)"
    )
    _add_network_argument(stats_parser)


def _add_health_check_command(subparsers):
    """Add health-check command parser."""
    health_parser = subparsers.add_parser(
        "health-check",
        help="Check system health",
        description="Check configuration, database connectivity and supported networks"
    )
    _add_json_argument(health_parser)


def _add_simulate_history_command(subparsers):
    """Add simulate-history command parser."""
    simulate_parser = subparsers.add_parser(
        "simulate-history",
        help="Generate a SIMULATED address timeline",
        description="Generate a synthetic address timeline. The output is simulated and not chain data."
    )
    simulate_parser.add_argument(
        "address",
        type=str,
        help="Address the timeline is generated for"
    )
    simulate_parser.add_argument(
        "--transaction-count",
        type=int,
        default=50,
        help="Transaction count the address reports (default: 50)"
    )
    simulate_parser.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Maximum number of events (default: 20)"
    )
    simulate_parser.add_argument(
        "--contract",
        action="store_true",
        help="Treat the address as a contract"
    )
    simulate_parser.add_argument(
        "--seed",
        type=int,
        help="Seed for reproducible output"
    )
    _add_json_argument(simulate_parser)


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="chain-insight: Hyperliquid transaction and block analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  chain-insight init --db-url sqlite:///chain.db    # Initialize config and tables
  chain-insight validate --check-db                 # Validate configuration
  chain-insight analyze-tx 0xabc...                 # Analyze a transaction
  chain-insight analyze-block latest --json         # Analyze the latest block
  chain-insight recent-blocks --limit 5             # List recent blocks
  chain-insight address-txs 0xdef... --limit 20     # List address transactions
  chain-insight address-risk 0xdef...               # Score an address
  chain-insight transfer-risk 0xdef... --from 0xabc... --amount 250
  chain-insight cache-stats --tx 0xabc... --repeat 2
  chain-insight health-check                        # Check system health
  chain-insight simulate-history 0xdef... --seed 7  # Simulated timeline
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version="chain-insight 0.1.0"
    )

    parser.add_argument(
        "--config",
        type=str,
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-error output"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Setup and configuration commands
    _add_init_command(subparsers)
    _add_validate_command(subparsers)

    # Analysis commands
    _add_analyze_tx_command(subparsers)
    _add_analyze_block_command(subparsers)
    _add_recent_blocks_command(subparsers)
    _add_address_txs_command(subparsers)
    _add_address_risk_command(subparsers)
    _add_transfer_risk_command(subparsers)

    # Maintenance commands
    _add_cache_stats_command(subparsers)
    _add_health_check_command(subparsers)

    # Simulated data
    _add_simulate_history_command(subparsers)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    if args.quiet:
        logging.basicConfig(level=logging.ERROR)
    elif args.verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    else:
        logging.basicConfig(level=logging.WARNING, format='%(levelname)s: %(message)s')

    command_handlers = {
        "init": init_command,
        "validate": validate_command,
        "analyze-tx": analyze_tx_command,
        "analyze-block": analyze_block_command,
        "recent-blocks": recent_blocks_command,
        "address-txs": address_txs_command,
        "address-risk": address_risk_command,
        "transfer-risk": transfer_risk_command,
        "cache-stats": cache_stats_command,
        "health-check": health_check_command,
        "simulate-history": simulate_history_command,
    }

    handler = command_handlers.get(args.command)
    if handler:
        try:
            if asyncio.iscoroutinefunction(handler):
                return asyncio.run(handler(args))
            else:
                return handler(args)
        except KeyboardInterrupt:
            print("\nOperation cancelled by user.")
            return 130
        except Exception as e:
            if args.verbose:
                import traceback
                traceback.print_exc()
            else:
                print(f"Error: {e}")
            return 1
    else:
        print(f"Unknown command: {args.command}")
        return 1


def _load_config(config_path: str):
    from chain_insight.config.manager import ConfigManager

    manager = ConfigManager(config_path)
    return manager, manager.load_config()


def _build_context(config):
    from chain_insight.pipeline.context import AnalysisContext

    # One-shot commands do not need the background sweep
    config.maintenance.enabled = False
    return AnalysisContext.from_config(config)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _print_failure(response: Dict[str, Any]) -> None:
    print(f"✗ [{response['error_code']}] {response['error']}")
    for suggestion in response.get("suggestions", []):
        print(f"  - {suggestion}")


def init_command(args):
    """Initialize configuration and database."""
    config_path = Path(args.config)

    if config_path.exists() and not args.force:
        print(f"Configuration file {config_path} already exists. Use --force to overwrite.")
        return 1

    try:
        if config_path.exists():
            config_path.unlink()

        print(f"Initializing configuration at {config_path}...")
        _, config = _load_config(str(config_path))

        if args.db_url:
            config.database.url = args.db_url

        print(f"[OK] Configuration initialized at {config_path}")
        print(f"  Database URL: {config.database.url or '(from DATABASE_URL)'}")
        print(f"  Transaction table: {config.queries.transaction_table}")
        print(f"  Block table: {config.queries.block_table}")

        if not args.skip_db:
            if not config.database.url and not config.database.async_url:
                print("No database URL configured, skipping database initialization.")
                return 0
            print("\nInitializing database...")
            return asyncio.run(_init_database(config))

        return 0

    except Exception as e:
        print(f"Error initializing configuration: {e}")
        return 1


async def _init_database(config):
    """Create the transaction, block and log tables."""
    from chain_insight.database.connection import DatabaseConnection

    connection = DatabaseConnection(config.database)
    try:
        connection.initialize()
        await connection.create_tables_async()
        print("✓ Database initialized successfully")
        return 0

    except Exception as e:
        print(f"Error initializing database: {e}")
        return 1
    finally:
        await connection.close_async()


def validate_command(args):
    """Validate configuration file."""
    config_path = Path(args.config)

    if not config_path.exists():
        print(f"Configuration file {config_path} not found.")
        return 1

    try:
        from chain_insight.config.manager import ConfigManager

        print(f"Validating configuration: {config_path}")

        manager = ConfigManager(str(config_path))
        is_valid, errors = manager.validate_config_file()

        if is_valid:
            print("✓ Configuration is valid")
            config = manager.load_config()

            print("\nConfiguration Summary:")
            print(f"  Database: {config.database.url or '(from DATABASE_URL)'}")
            print(f"  Tables: {config.queries.transaction_table}, {config.queries.block_table}")
            print(f"  Cache: {config.cache.max_size} entries, evicting {config.cache.eviction_fraction:.0%}")
            print(f"  Maintenance sweep: {config.maintenance.sweep_interval}")
            print(f"  Context blocks: {config.analysis.context_blocks}")

            if args.check_db:
                return asyncio.run(_check_database(config))

            return 0
        else:
            print("✗ Configuration validation failed:")
            for error in errors:
                print(f"  - {error}")
            return 1

    except Exception as e:
        print(f"Error validating configuration: {e}")
        return 1


async def _check_database(config) -> int:
    """Check database connectivity through the connection cache."""
    context = _build_context(config)
    try:
        handle = await context.connections.get_connection_handle(DEFAULT_NETWORK_ID)
        if await handle.query_client.health_check_async():
            print("✓ Database connection OK")
            return 0
        print("✗ Database connection failed")
        return 1
    finally:
        await context.close()


async def _run_analysis(args, kind: str, identifier: str) -> int:
    from chain_insight.pipeline.orchestrator import AnalysisOrchestrator

    _, config = _load_config(args.config)
    context = _build_context(config)
    try:
        orchestrator = AnalysisOrchestrator(context)
        response = await orchestrator.handle({
            "kind": kind,
            "identifier": identifier,
            "network_id": args.network_id,
        })
    finally:
        await context.close()

    if args.json:
        _print_json(response)
    elif response["success"]:
        print(response["data"]["formatted_analysis"])
    else:
        _print_failure(response)
    return 0 if response["success"] else 1


async def analyze_tx_command(args):
    """Analyze one transaction."""
    return await _run_analysis(args, "transaction", args.tx_hash)


async def analyze_block_command(args):
    """Analyze one block."""
    return await _run_analysis(args, "block", args.block)


async def recent_blocks_command(args):
    """List the most recent blocks."""
    from chain_insight.pipeline.orchestrator import AnalysisOrchestrator

    _, config = _load_config(args.config)
    context = _build_context(config)
    try:
        response = await AnalysisOrchestrator(context).recent_blocks(args.network_id, args.limit)
    finally:
        await context.close()

    if args.json:
        _print_json(response)
        return 0 if response["success"] else 1
    if not response["success"]:
        _print_failure(response)
        return 1

    blocks = response["data"]
    if not blocks:
        print("No blocks found.")
        return 0

    print(f"{'Block':<12} {'Txs':>6} {'Gas used':>14} {'Timestamp':<20} Hash")
    print("-" * 90)
    for block in blocks:
        timestamp = datetime.fromtimestamp(int(block["timestamp"]), tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        print(f"{block['number']:<12} {block['transaction_count']:>6} {block['gas_used']:>14} "
              f"{timestamp:<20} {block['hash']}")
    return 0


async def address_txs_command(args):
    """List the most recent transactions of an address."""
    from chain_insight.pipeline.orchestrator import AnalysisOrchestrator

    _, config = _load_config(args.config)
    context = _build_context(config)
    try:
        response = await AnalysisOrchestrator(context).address_transactions(
            args.address, args.network_id, args.limit
        )
    finally:
        await context.close()

    if args.json:
        _print_json(response)
        return 0 if response["success"] else 1
    if not response["success"]:
        _print_failure(response)
        return 1

    transactions = response["data"]
    if not transactions:
        print(f"No transactions found for {args.address}.")
        return 0

    for tx in transactions:
        direction = "OUT" if tx["from_address"].lower() == args.address.lower() else "IN "
        status = "✓" if tx["status"] else "✗"
        print(f"{status} {direction} block {tx['block_number']:<10} value {tx['value']:<24} {tx['hash']}")
    return 0


def _print_risk_score(label: str, risk_score: Dict[str, Any]):
    print(f"{label}: {risk_score['overall']}/100 ({risk_score['category']}, "
          f"confidence {risk_score['confidence']}%)")
    for factor in risk_score["factors"]:
        if not factor["available"]:
            print(f"  - {factor['type']}: unavailable ({factor['description']})")
            continue
        print(f"  - {factor['type']} [{factor['severity']}] {factor['score']}: {factor['description']}")


async def address_risk_command(args):
    """Score an address from its indexed history."""
    from chain_insight.pipeline.orchestrator import AnalysisOrchestrator

    _, config = _load_config(args.config)
    context = _build_context(config)
    try:
        response = await AnalysisOrchestrator(context).address_risk(args.address, args.network_id)
    finally:
        await context.close()

    if args.json:
        _print_json(response)
        return 0 if response["success"] else 1
    if not response["success"]:
        _print_failure(response)
        return 1

    analysis = response["data"]
    stats = analysis["stats"]
    print(f"Address {analysis['address']}")
    print(f"Indexed transactions: {stats['transaction_count']} "
          f"(sent {stats['sent_count']}, received {stats['received_count']}, failed {stats['failed_count']})")
    _print_risk_score("Risk", analysis["risk_score"])
    for flag in analysis["flags"]:
        print(f"⚠ [{flag['severity']}] {flag['description']}")
    return 0


async def transfer_risk_command(args):
    """Score a transfer between two addresses."""
    from chain_insight.pipeline.orchestrator import AnalysisOrchestrator

    _, config = _load_config(args.config)
    context = _build_context(config)
    try:
        response = await AnalysisOrchestrator(context).transfer_risk(
            args.to_address, args.network_id, args.from_address, args.amount
        )
    finally:
        await context.close()

    if args.json:
        _print_json(response)
        return 0 if response["success"] else 1
    if not response["success"]:
        _print_failure(response)
        return 1

    analysis = response["data"]
    sender = analysis["from_address"]["address"] if analysis["from_address"] else "unknown"
    print(f"Transfer {sender} -> {analysis['to_address']['address']} amount {analysis['amount']}")
    _print_risk_score("Overall risk", analysis["overall_risk"])
    for warning in analysis["warnings"]:
        print(f"⚠ {warning}")
    for recommendation in analysis["recommendations"]:
        print(f"• {recommendation}")
    return 0


async def cache_stats_command(args):
    """Show cache statistics after running the requested analyses."""
    from chain_insight.pipeline.orchestrator import AnalysisOrchestrator

    _, config = _load_config(args.config)
    context = _build_context(config)
    try:
        orchestrator = AnalysisOrchestrator(context)
        requests = (
            [{"kind": "transaction", "identifier": tx, "network_id": args.network_id} for tx in args.tx]
            + [{"kind": "block", "identifier": block, "network_id": args.network_id} for block in args.block]
        )
        for _ in range(max(1, args.repeat)):
            for request in requests:
                response = await orchestrator.handle(request)
                if not response["success"]:
                    print(f"✗ {request['kind']} {request['identifier']}: {response['error']}")
        stats = await orchestrator.cache_statistics()
    finally:
        await context.close()

    _print_json(stats)
    return 0 if stats["success"] else 1


async def health_check_command(args):
    """Perform system health check."""
    try:
        manager, config = _load_config(args.config)

        health_status = {
            "timestamp": datetime.now(),
            "overall_status": "healthy",
            "checks": {}
        }

        print("Checking configuration...")
        is_valid, errors = manager.validate_config_file()
        health_status["checks"]["configuration"] = {
            "status": "pass" if is_valid else "fail",
            "errors": errors
        }
        if not is_valid:
            health_status["overall_status"] = "unhealthy"

        print("Checking database connectivity...")
        context = _build_context(config)
        try:
            handle = await context.connections.get_connection_handle(DEFAULT_NETWORK_ID)
            if await handle.query_client.health_check_async():
                health_status["checks"]["database"] = {"status": "pass"}
            else:
                health_status["checks"]["database"] = {"status": "fail", "error": "liveness check failed"}
                health_status["overall_status"] = "unhealthy"
        except Exception as e:
            health_status["checks"]["database"] = {
                "status": "fail",
                "error": str(e)
            }
            health_status["overall_status"] = "unhealthy"
        finally:
            await context.close()

        health_status["checks"]["networks"] = {
            "status": "pass",
            "supported": [
                f"{network.chain_id} ({network.name})" for network in context.registry.all_networks()
            ]
        }

        if args.json:
            _print_json(health_status)
        else:
            _print_health_summary(health_status)

        return 0 if health_status["overall_status"] == "healthy" else 1

    except Exception as e:
        print(f"Error during health check: {e}")
        return 1


def _print_health_summary(health_status: Dict[str, Any]):
    """Print formatted health check summary."""
    overall = health_status["overall_status"]
    status_icon = "✓" if overall == "healthy" else "✗"

    print(f"\nSystem Health Check: {status_icon} {overall.upper()}")
    print("=" * 40)

    for check_name, check_result in health_status["checks"].items():
        status = check_result["status"]
        icon = "✓" if status == "pass" else "✗"
        print(f"{icon} {check_name.title()}: {status.upper()}")

        if "error" in check_result:
            print(f"  Error: {check_result['error']}")
        elif "errors" in check_result and check_result["errors"]:
            for error in check_result["errors"]:
                print(f"  Error: {error}")
        for item in check_result.get("supported", []):
            print(f"  {item}")


def simulate_history_command(args):
    """Generate a simulated address timeline."""
    from chain_insight.simulation.address_history import SimulatedAddressHistory
    from chain_insight.utils.values import serialize_big_ints

    timeline = SimulatedAddressHistory(seed=args.seed).generate(
        args.address,
        transaction_count=args.transaction_count,
        limit=args.limit,
        is_contract=args.contract,
    )

    if args.json:
        _print_json(serialize_big_ints(timeline))
        return 0

    summary = timeline.summary
    patterns = timeline.patterns
    print(f"SIMULATED timeline for {timeline.address} (not chain data)")
    print("=" * 60)
    print(f"Events: {summary.total_transactions}")
    print(f"Total volume: {summary.total_volume} {summary.currency_symbol}")
    print(f"Risk events: {summary.risk_events}")
    print(f"Average gas price: {summary.average_gas_price_gwei} gwei")
    print(f"Most active day: {summary.most_active_day}")
    print(f"Regularity score: {patterns.regularity_score}")
    print(f"Trading behaviour: {patterns.trading_behavior}")
    for factor in patterns.risk_factors:
        print(f"  Risk factor: {factor}")
    print()
    for event in timeline.events:
        print(f"{event.timestamp:%Y-%m-%d %H:%M} {event.event_type:<20} {event.amount:>14} "
              f"{event.status:<7} {event.risk_level}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
