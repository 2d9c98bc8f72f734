# scripts/run_simulation.py

import argparse
import sys

from resource_cache.config import Settings
from resource_cache.logger import setup_logging, get_logger
from resource_cache.simulator import Simulator

logger = get_logger(__name__)

SCALARS = (int, float, str, type(None))


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Запуск DES-симуляции кеша ресурсов с заданным конфигом"
    )
    parser.add_argument(
        "-c", "--config",
        metavar="PATH",
        type=str,
        default=None,
        help="Путь до YAML-конфига (по умолчанию: CONFIG_PATH или config/default.yaml)"
    )
    parser.add_argument(
        "--no-export",
        action="store_true",
        help="Не экспортировать метрики в файл"
    )
    parser.add_argument(
        "--plot",
        action="store_true",
        help="Показать графики после симуляции"
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    # Загрузка конфига
    settings = Settings.load(path=args.config)
    if args.no_export:
        settings.output = None

    setup_logging(settings)
    logger.info("Loaded settings and configured logging")

    sim = Simulator(settings)
    summary = sim.run()

    # Печать сводки по метрикам (только агрегаты)
    print("\n=== Simulation Metrics Summary ===")
    for k, v in summary.items():
        if isinstance(v, SCALARS) or k == "transition_outcomes":
            print(f"{k:20}: {v}")

    if args.no_export:
        logger.info("Skipping metrics export (--no-export)")
    elif sim.exported_to:
        logger.info(f"Metrics were exported to {sim.exported_to}")
    else:
        logger.warning("No output.path in config; nothing was exported")

    if args.plot:
        from resource_cache.visualizer import SimulationVisualizer
        SimulationVisualizer(summary).show_all()

    return 0


if __name__ == "__main__":
    sys.exit(main())
