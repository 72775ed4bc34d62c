import asyncio


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class DummyClient:
    """Answers status requests from a table; ``gates`` hold a request until released."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.gates = {}
        self.calls = []
        self.closed = False

    def hold(self, address: str) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[address] = gate
        return gate

    async def fetch_status(self, address: str):
        self.calls.append(address)
        gate = self.gates.get(address)
        if gate is not None:
            await gate.wait()
        result = self.responses[address]
        if isinstance(result, BaseException):
            raise result
        return dict(result)

    async def aclose(self) -> None:
        self.closed = True


async def wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)
