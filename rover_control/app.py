from __future__ import annotations

# Single-entrypoint runner.
#
#     python -m rover_control.app serve [--report-rejections]
#     python -m rover_control.app drive --commands forward,left,forward
#
# Each subcommand forwards its flags to the module's own main().

import argparse
import sys

from .config import add_logging_args, add_mqtt_args


def main() -> None:
    parser = argparse.ArgumentParser(description="Rover control arbiter (MQTT) - main entrypoint")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_srv = sub.add_parser("serve", help="Start the control server with a simulated rover")
    add_mqtt_args(p_srv)
    add_logging_args(p_srv)
    p_srv.add_argument("--publish-status-every", type=float, default=2.0)
    p_srv.add_argument("--report-rejections", action="store_true", help="tell clients when their commands are dropped")

    p_drv = sub.add_parser("drive", help="Request control and send movement commands")
    add_mqtt_args(p_drv)
    add_logging_args(p_drv)
    p_drv.add_argument("--client-id", default=None)
    p_drv.add_argument("--commands", default="forward", help="comma separated, e.g. forward,left")
    p_drv.add_argument("--hold-seconds", type=float, default=0.0)
    p_drv.add_argument("--grant-timeout", type=float, default=30.0)

    args = parser.parse_args()

    common = [
        "--mqtt-host",
        args.mqtt_host,
        "--mqtt-port",
        str(args.mqtt_port),
        "--namespace",
        args.namespace,
        "--log-level",
        args.log_level,
    ]

    if args.cmd == "serve":
        from .server import main as run

        run_args = common + ["--publish-status-every", str(args.publish_status_every)]
        if args.report_rejections:
            run_args += ["--report-rejections"]
        _dispatch_to_module_main(run, run_args)
        return

    if args.cmd == "drive":
        from .client import main as run

        run_args = common + [
            "--commands",
            args.commands,
            "--hold-seconds",
            str(args.hold_seconds),
            "--grant-timeout",
            str(args.grant_timeout),
        ]
        if args.client_id:
            run_args += ["--client-id", args.client_id]
        _dispatch_to_module_main(run, run_args)
        return


def _dispatch_to_module_main(module_main, argv: list[str]) -> None:
    old_argv = sys.argv[:]
    try:
        sys.argv = [old_argv[0], *argv]
        module_main()
    finally:
        sys.argv = old_argv


if __name__ == "__main__":
    main()
