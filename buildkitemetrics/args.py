import argparse
import os
from typing import Any, Optional, Tuple

DEFAULT_ENV_ARGS_PREFIX = "BUILDKITEMETRICS_"


class Namespace(argparse.Namespace):
    def __getattr__(self, item):
        return None


class _MachineHelpAction(argparse.Action):
    def __init__(
        self,
        option_strings,
        dest=argparse.SUPPRESS,
        default=argparse.SUPPRESS,
        help=None,
    ):
        super().__init__(
            option_strings=option_strings,
            dest=dest,
            default=default,
            nargs=0,
            help=help,
        )

    def __call__(self, parser, namespace, values, option_string=None):
        parser.print_machine_help()
        parser.exit()


class ArgumentParser(argparse.ArgumentParser):
    # Last return value of parse_args().
    # Any attribute is None until parse_args() has been called.
    args = Namespace()

    def __init__(
        self,
        *args,
        env_args_prefix: str = DEFAULT_ENV_ARGS_PREFIX,
        add_machine_help: bool = True,
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.env_args_prefix = env_args_prefix
        self.add_machine_help = add_machine_help
        self.register("action", "machine_help", _MachineHelpAction)

        if self.add_machine_help:
            self.add_argument(
                "--machine-help",
                action="machine_help",
                help="print machine readable help",
            )

    def print_machine_help(self):
        for action in self._actions:
            if action.default == argparse.SUPPRESS:
                continue
            for option_string in action.option_strings:
                print(option_string)

    def env_name(self, action: argparse.Action) -> Optional[str]:
        for option_string in action.option_strings:
            if option_string.startswith("--"):
                return self.env_args_prefix + option_string[2:].replace("-", "_").upper()
        return None

    def parse_known_args(self, args=None, namespace=None) -> Tuple[argparse.Namespace, list]:
        for action in self._actions:
            env_name = self.env_name(action)
            if env_name is None or action.default == argparse.SUPPRESS:
                continue
            new_default = os.environ.get(env_name)
            if new_default is None:
                continue
            if action.type is not None:
                type_goal = action.type
            else:
                type_goal = type(action.default)
            action.default = convert(new_default, type_goal)
        ret_args, ret_argv = super().parse_known_args(args=args, namespace=namespace)
        # unknown attributes read as None once parsed
        ret_args = Namespace(**vars(ret_args))
        ArgumentParser.args = ret_args
        return ret_args, ret_argv


def get_arg_parser(
    add_help: bool = True,
    description: str = "buildkite metrics exporter",
    env_args_prefix: str = DEFAULT_ENV_ARGS_PREFIX,
) -> ArgumentParser:
    arg_parser = ArgumentParser(description=description, add_help=add_help, env_args_prefix=env_args_prefix)
    return arg_parser


NoneType = type(None)


def convert(value: Any, type_goal: type) -> Any:
    if type_goal is NoneType:
        return value
    elif isinstance(type_goal, type):
        try:
            if type_goal in (str, int, float):
                return type_goal(value)
            elif type_goal is bool:
                return value.lower() in ("true", "1", "yes")
            else:
                # don't know how to handle this type
                return value
        except Exception:
            # can not convert value
            return value
    return value
