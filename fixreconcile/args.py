import argparse
import os
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

DEFAULT_ENV_ARGS_PREFIX = "FIXRECONCILE_"

NoneType = type(None)


class Namespace(argparse.Namespace):
    def __getattr__(self, item: str) -> Any:
        return None


class ArgumentParser(argparse.ArgumentParser):
    """
    Argument parser that takes the default of every long option from the environment:
    --state is read from FIXRECONCILE_STATE.
    Options with multiple values are split by whitespace or defined as FIXRECONCILE_<NAME>0..N.
    """

    # result of the last parse_args() call
    args = Namespace()

    def __init__(self, *args: Any, env_args_prefix: str = DEFAULT_ENV_ARGS_PREFIX, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.env_args_prefix = env_args_prefix

    def env_name(self, action: argparse.Action) -> Optional[str]:
        long_option = next((o for o in action.option_strings if o.startswith("--")), None)
        if long_option is None or action.default == argparse.SUPPRESS:
            return None
        return self.env_args_prefix + long_option[2:].replace("-", "_").upper()

    def env_default(self, action: argparse.Action) -> Any:
        """
        The default value of the action as defined in the environment or None.
        """
        name = self.env_name(action)
        if name is None:
            return None
        type_goal = action.type if callable(action.type) else type(action.default)
        if action.nargs in (0, None):
            value = os.environ.get(name)
            return None if value is None else convert(value, type_goal)
        values: List[str] = []
        if (joined := os.environ.get(name)) is not None:
            values = joined.split(" ")
        else:
            values = [v for v in (os.environ.get(f"{name}{i}") for i in range(255)) if v is not None]
        return [convert(v, type_goal) for v in values] if values else None

    def parse_known_args(  # type: ignore
        self, args: Optional[Sequence[str]] = None, namespace: Optional[argparse.Namespace] = None
    ) -> Tuple[argparse.Namespace, List[str]]:
        for action in self._actions:
            if (default := self.env_default(action)) is not None:
                action.default = default
        parsed, remaining = super().parse_known_args(args=args, namespace=namespace)
        ArgumentParser.args = parsed  # type: ignore
        return parsed, remaining


def convert(value: str, type_goal: Union[type, Callable[[Any], Any]]) -> Any:
    """
    Convert a value read from the environment into the type of the option.
    Values that can not be converted are returned unchanged.
    """
    if type_goal is NoneType:
        return value
    elif type_goal is bool:
        return value.lower() in ("true", "1", "yes")
    elif type_goal in (str, int, float):
        try:
            return type_goal(value)  # type: ignore
        except ValueError:
            return value
    elif isinstance(type_goal, type):
        return value
    else:
        return type_goal(value)


def get_arg_parser(
    add_help: bool = True,
    description: str = "fixreconcile",
    env_args_prefix: str = DEFAULT_ENV_ARGS_PREFIX,
) -> ArgumentParser:
    return ArgumentParser(description=description, add_help=add_help, env_args_prefix=env_args_prefix)
