"""Asynchronous data handler with named states."""

import typing

import attr


class HandlingState:
    """Class for a state of handling."""

    id: str = ""

    async def enter(self, machine: "HandlerStateMachine"):
        """Called when entering this state."""
        pass

    async def exit(self, machine: "HandlerStateMachine"):
        """Called when exiting this state."""
        pass

    async def handle(
        self, machine: "HandlerStateMachine", data: typing.Any
    ) -> typing.Optional[str]:
        """Handle some data, and optionally return the next state's ID."""
        pass


@attr.s(auto_attribs=True)
class HandlerStateMachine:
    """Class for a state machine that handles data asynchronously, with states.

        >>> import trio
        >>> class Echo(HandlingState):
        ...     id = 'echo'
        ...     async def handle(self, machine, data):
        ...         print('echo:', data)
        ...         return 'quiet' if data == 'stop' else None
        ...
        >>> class Quiet(HandlingState):
        ...     id = 'quiet'
        ...
        >>> machine = HandlerStateMachine()
        >>> machine.register_state(Echo())
        False
        >>> machine.register_state(Quiet())
        False
        >>> async def feed():
        ...     await machine.next_state('echo')
        ...     for word in ('hi', 'stop', 'ignored'):
        ...         await machine.handle_data(word)
        ...
        >>> trio.run(feed)
        echo: hi
        echo: stop
        >>> machine.state_id
        'quiet'
    """

    states: dict[str, HandlingState] = attr.Factory(dict)
    state: typing.Optional[HandlingState] = None

    def is_on_state(self) -> bool:
        """Returns True if and only if there is a non-null current state."""
        return self.state is not None

    @property
    def state_id(self) -> typing.Optional[str]:
        return self.state.id if self.state is not None else None

    def has_state(self, name: str) -> bool:
        """Returns True if this state exists by name."""
        return name in self.states

    def register_state(self, handler: HandlingState) -> bool:
        """Register a handling state.

        Returns True if and only if handler.id was already a registered
        state, in which case nothing is changed.
        """
        if self.has_state(handler.id):
            return True

        self.states[handler.id] = handler
        return False

    async def next_state(self, name: str) -> bool:
        """Try to switch to the next state.

        Returns True if and only if the state exists and was switched to."""

        if not self.has_state(name):
            return False

        if self.state is not None:
            await self.state.exit(self)

        self.state = self.states[name]
        await self.state.enter(self)

        return True

    async def handle_data(self, data: typing.Any):
        """Hand some data to the current state, switching states if it asks to."""
        if self.is_on_state():
            next_state = await self.state.handle(self, data)

            if next_state is not None:
                await self.next_state(next_state)
