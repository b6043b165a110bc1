"""Console runner for the Fluke DAQ datasource."""
from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from pathlib import Path
from typing import Callable, Optional, TextIO

from flukedaq import AppConfig, load_config
from flukedaq.errors import ConfigurationError, DatasourceError
from flukedaq.hardware import DeviceCollaborator, connect_to_daq, create_device, describe_tags
from flukedaq.recording import FlukeDatasource
from flukedaq.sink.influx import ClientFactory

log = logging.getLogger(__name__)


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Console runner for the Fluke DAQ datasource')
    parser.add_argument('--config', type=Path, default=Path('fluke.yaml'), help='Configuration file (json/toml/yaml, default: fluke.yaml)')
    parser.add_argument('--list-tags', action='store_true', help='Print configured channel names and exit')
    parser.add_argument('--browse', action='store_true', help='Print every tag exposed by the device and exit')
    parser.add_argument('--duration', type=float, default=0.0, help='Stop recording after this many seconds (0 runs until Ctrl+C)')
    parser.add_argument('--log-level', type=str, default='INFO', help='Logging level (default: INFO)')
    return parser.parse_args(argv)


def run(
    config: AppConfig,
    *,
    duration_s: float = 0.0,
    device: Optional[DeviceCollaborator] = None,
    client_factory: Optional[ClientFactory] = None,
    out: TextIO = sys.stdout,
    stop_event: Optional[threading.Event] = None,
) -> int:
    """Record until *duration_s* elapses or *stop_event* is set, printing frames as JSON lines."""

    influx_cfg = config.influx
    if influx_cfg.enabled and (not influx_cfg.url or not influx_cfg.token):
        log.warning('Influx URL or API Token config parameters cannot be blank')

    controller = connect_to_daq(config.device, device)
    datasource = FlukeDatasource(config, controller, client_factory=client_factory)
    stop_event = stop_event or threading.Event()
    try:
        stream = datasource.start_record()

        def _consume() -> None:
            for record in stream:
                out.write(json.dumps(record.to_dict()) + '\n')
                out.flush()

        consumer = threading.Thread(target=_consume, name='frame-printer', daemon=True)
        consumer.start()
        try:
            stop_event.wait(duration_s if duration_s > 0 else None)
        except KeyboardInterrupt:
            pass
        try:
            datasource.stop_record()
        except DatasourceError:
            pass  # session already ended on its own
        datasource.stop()
        consumer.join(timeout=2.0)
    finally:
        controller.close()
    stats = datasource.stats
    print(
        f"Recording summary: sessions={stats.sessions} frames={stats.frames} "
        f"points={stats.points} dropped={stats.dropped_frames} error={stats.last_error or 'none'}",
        file=sys.stderr,
    )
    return 0


def main(argv: list[str], device_factory: Optional[Callable[[AppConfig], DeviceCollaborator]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    try:
        config = load_config(args.config)
    except (TypeError, ValueError) as exc:
        print(str(exc), file=sys.stderr)
        return 2

    device = device_factory(config) if device_factory else create_device(config.device)

    if args.browse:
        for index, tag in describe_tags(device).items():
            print(f"{index}: {tag}")
        return 0

    if args.list_tags:
        try:
            controller = connect_to_daq(config.device, device)
        except ConfigurationError as exc:
            print(str(exc), file=sys.stderr)
            return 2
        try:
            for name in controller.names():
                print(name)
        finally:
            controller.close()
        return 0

    try:
        return run(config, duration_s=args.duration, device=device)
    except ConfigurationError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    except DatasourceError as exc:
        print(str(exc), file=sys.stderr)
        return 1


def entrypoint() -> int:
    return main(sys.argv[1:])


if __name__ == '__main__':
    raise SystemExit(main(sys.argv[1:]))
