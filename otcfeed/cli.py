#!filepath: otcfeed/cli.py
import asyncio
from typing import List, Optional

import typer
from rich import print
from rich.console import Console
from rich.table import Table

from otcfeed import __version__
from otcfeed.config.app_config import AppConfig
from otcfeed.core.time import to_datetime
from otcfeed.utils.logger import init_logging

app = typer.Typer(help="OTC synthetic price feed CLI")


@app.command()
def version():
    print(f"v{__version__}")


@app.command()
def run(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML config path"),
    seconds: float = typer.Option(10.0, "--seconds", "-s", help="How long to run"),
    symbol: Optional[List[str]] = typer.Option(None, "--symbol", help="Only these symbols"),
    seed: Optional[int] = typer.Option(None, "--seed"),
):
    """
    Run the tick scheduler for every enabled symbol and print the ticks.
    """
    cfg = AppConfig.load(config)
    init_logging(cfg.log)

    symbols = [s for s in cfg.enabled_symbols() if not symbol or s.symbol in symbol]
    if not symbols:
        print("[red]No enabled symbols to run[/red]")
        raise typer.Exit(code=1)

    print(f"[green]Running {len(symbols)} symbols for {seconds:.0f}s[/green]")
    asyncio.run(_run_feed(cfg, symbols, seconds, seed))


async def _run_feed(cfg: AppConfig, symbols, seconds: float, seed: Optional[int]) -> None:
    from otcfeed.engines.manual_control import ManualControlRegistry
    from otcfeed.engines.price_generator import PriceGenerator
    from otcfeed.engines.risk_engine import RiskEngine
    from otcfeed.market.feed import MarketFeed
    from otcfeed.scheduler.otc_scheduler import OTCScheduler

    feed = MarketFeed(buffer=cfg.scheduler.subscriber_buffer)
    scheduler = OTCScheduler(
        generator=PriceGenerator(seed=seed, controls=ManualControlRegistry()),
        risk=RiskEngine(),
        feed=feed,
        config=cfg.scheduler,
    )

    sub = feed.subscribe()
    await scheduler.start_all(symbols)

    async def printer():
        async for tick in sub:
            print(
                f"{to_datetime(tick.ts_us):%H:%M:%S} [cyan]{tick.symbol:<12}[/cyan] "
                f"{tick.price:<12} bid={tick.bid} ask={tick.ask} "
                f"[dim]{tick.phase.value}[/dim]"
            )

    printer_task = asyncio.create_task(printer())
    try:
        await asyncio.sleep(seconds)
    finally:
        await scheduler.stop_all()
        sub.close()
        await printer_task


@app.command()
def candles(
    symbol: str,
    end_price: Optional[float] = typer.Option(None, "--end-price", "-p"),
    count: int = typer.Option(50, "--count", "-n"),
    duration: float = typer.Option(60.0, "--duration", "-d", help="Candle duration in seconds"),
    seed: Optional[int] = typer.Option(None, "--seed"),
    config: Optional[str] = typer.Option(None, "--config", "-c"),
):
    """
    Synthesize historical candles that end at --end-price.
    """
    from otcfeed.engines.history_synthesizer import HistorySynthesizer

    cfg = AppConfig.load(config)
    init_logging(cfg.log)

    sym_cfg = cfg.symbols.get(symbol)
    if sym_cfg is None:
        print(f"[red]Unknown symbol {symbol}[/red]")
        raise typer.Exit(code=1)

    price = end_price if end_price is not None else sym_cfg.default_price
    bars = HistorySynthesizer().generate_candles(
        sym_cfg, price, count, candle_duration_seconds=duration, seed=seed
    )

    table = Table(title=f"{symbol} x {len(bars)}")
    for col in ("time", "open", "high", "low", "close", "volume"):
        table.add_column(col, justify="right")
    for c in bars:
        table.add_row(
            f"{to_datetime(c.ts_us):%Y-%m-%d %H:%M}",
            str(c.open), str(c.high), str(c.low), str(c.close), str(c.volume),
        )
    Console().print(table)


if __name__ == "__main__":
    app()

# python -m otcfeed.cli candles EUR/USD-OTC --end-price 1.0850 --count 20 --seed 7
