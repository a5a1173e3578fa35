import argparse
from pathlib import Path

from soilph.settings import load_settings


def _add_common(parser: argparse.ArgumentParser, *, config_default, scenario_default) -> None:
    parser.add_argument("--config", default=config_default, help="Path to config YAML")
    parser.add_argument(
        "--scenario",
        default=scenario_default,
        help="Scenario name (config/scenarios/<name>.yaml), e.g. subsoil, topsoil, ncss_subsoil",
    )


def _build_parser() -> argparse.ArgumentParser:
    # Subcommand copies only set a value when given, so `soilph --scenario topsoil sample`
    # keeps the top-level choice.
    common = argparse.ArgumentParser(add_help=False)
    _add_common(common, config_default=argparse.SUPPRESS, scenario_default=argparse.SUPPRESS)

    parser = argparse.ArgumentParser(prog="soilph", description="SoilPH analysis CLI")
    _add_common(parser, config_default="config/default.yaml", scenario_default="subsoil")

    sub = parser.add_subparsers(dest="command", required=True)
    sample = sub.add_parser("sample", parents=[common], help="Spatially resample the scenario's profile table")
    sample.add_argument("--n", type=int, default=None, help="Override sampling.n")
    sample.add_argument("--length-scale-km", type=float, default=None, help="Override sampling.length_scale_km")
    sample.add_argument("--seed", type=int, default=None, help="Override sampling.seed")
    boot = sub.add_parser("bootstrap", parents=[common], help="Non-spatial bootstrap of the profile table")
    boot.add_argument("--n", type=int, default=None, help="Override sampling.n")
    boot.add_argument("--seed", type=int, default=None, help="Override sampling.seed")
    sub.add_parser("buffers", parents=[common], help="Calcite and aluminium exchange pH buffers")
    sub.add_parser("pet", parents=[common], help="Annual PET from monthly climate arrays (.npz)")
    sub.add_parser("validate-inputs", parents=[common], help="Validate profile and grid tables and write a report")
    return parser


def _apply_overrides(settings: dict, args: argparse.Namespace) -> None:
    sampling = settings.setdefault("sampling", {})
    if getattr(args, "n", None) is not None:
        sampling["n"] = int(args.n)
    if getattr(args, "length_scale_km", None) is not None:
        sampling["length_scale_km"] = float(args.length_scale_km)
    if getattr(args, "seed", None) is not None:
        sampling["seed"] = int(args.seed)


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    settings = load_settings(Path(args.config), scenario=args.scenario)
    _apply_overrides(settings, args)

    if args.command == "sample":
        from soilph.pipeline import run_spatial_sample

        run_spatial_sample(settings)
        return

    if args.command == "bootstrap":
        from soilph.pipeline import run_bootstrap_sample

        run_bootstrap_sample(settings)
        return

    if args.command == "buffers":
        from soilph.pipeline import dump_summary, run_buffer_analysis

        print(dump_summary(run_buffer_analysis(settings)))
        return

    if args.command == "pet":
        from soilph.pipeline import run_pet

        run_pet(settings)
        return

    if args.command == "validate-inputs":
        from soilph.pipeline import validate_inputs
        from soilph.tables.validators import format_validation_summary

        results = validate_inputs(settings, raise_on_error=False)
        print(format_validation_summary(results))
        if not all(r.ok for r in results.values()):
            raise SystemExit(1)
        return

    raise SystemExit(f"Unknown command: {args.command}")
