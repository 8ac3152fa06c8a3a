from typing import List


class ShaperError(Exception):
    pass


class CommandFailed(ShaperError):
    def __init__(self, command: str, output: str, exit_code: int):
        super().__init__(
            f"cmd: {command}, out: {output.strip()}, exit code: {exit_code}"
        )
        self.command = command
        self.output = output
        self.exit_code = exit_code


class ShapingCommandFailed(CommandFailed):
    pass


class InterfaceNotFound(ShaperError):
    def __init__(self, container: str):
        super().__init__(f"container: {container}, no veth found")
        self.container = container


class NamespaceLinkFailed(ShaperError):
    def __init__(self, container: str, reason: str):
        super().__init__(
            f"cannot link network namespace of container {container}: {reason}"
        )
        self.container = container


class ProvisionFailed(ShaperError):
    def __init__(self, container: str, reason: str):
        super().__init__(
            f"cannot create reflector for container {container}: {reason}"
        )
        self.container = container


class IngressUnavailable(ShaperError):
    def __init__(self, container: str):
        super().__init__(
            f"container {container} has no reflector, ingress traffic cannot be shaped"
        )
        self.container = container


class ReflectorMappingMissing(ShaperError):
    def __init__(self, container: str):
        super().__init__(f"no reflector recorded for container {container}")
        self.container = container


class StateStoreError(ShaperError):
    pass


class SubscriptionFailed(ShaperError):
    pass


class TeardownPartialFailure(ShaperError):
    def __init__(self, container: str, failures: List[str]):
        super().__init__(
            f"teardown of container {container} incomplete: {'; '.join(failures)}"
        )
        self.container = container
        self.failures = failures


class DaemonUnavailable(ShaperError):
    """The Docker daemon refused or dropped a request."""

    def __init__(self, reason: str, container: str = ""):
        target = f" for container {container}" if container else ""
        super().__init__(f"docker request failed{target}: {reason}")
        self.container = container
        self.reason = reason
