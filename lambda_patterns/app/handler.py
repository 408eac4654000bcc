# =============================================================================
# Handler - Invocation Lifecycle
# =============================================================================
# Wraps a processing function so every invocation runs the same stages:
#
#   init -> process -> cleanup -> respond
#
# Cleanup always runs once, after process, whether or not processing worked.
# Failures from init, process and cleanup are all delivered through respond().
# If respond() itself fails, the failure is delivered through respond() again,
# up to MAX_RESPONSE_ATTEMPTS attempts, after which the raw callback receives
# the last error directly.
# =============================================================================

import inspect
import logging
import uuid
from enum import Enum
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Tuple, Union

from lambda_patterns.app import strategies
from lambda_patterns.app.options import HandlerOptions
from lambda_patterns.exceptions import ConfigurationError
from lambda_patterns.runtime.context import request_id_of, set_wait_for_empty_event_loop
from lambda_patterns.runtime.deps import Deps
from lambda_patterns.runtime.environment import ExecutionEnvironment
from lambda_patterns.runtime.profiling import encode_profile

logger = logging.getLogger(__name__)

MAX_RESPONSE_ATTEMPTS = 3
PROCESSOR_ERROR = "Handlers must be constructed with a function for processing"

Callback = Callable[..., Any]
OptionsArg = Union[HandlerOptions, Mapping[str, Any], None]


class Stage(str, Enum):
    """Position of a handler in its lifecycle."""
    CREATED = "created"
    INITIALIZING = "initializing"
    PROCESSING = "processing"
    CLEANING_UP = "cleaning_up"
    RESPONDING = "responding"
    ERROR_RESPONDING = "error_responding"
    CALLBACK_FALLBACK = "callback_fallback"
    TERMINATED = "terminated"


class ResponseCollector:
    """
    Callback used when the host does not supply one (the native Python Lambda
    signature). Records every delivery so the handler function can return the
    result or raise the error.
    """

    def __init__(self):
        self.calls: List[Tuple[Optional[BaseException], Any]] = []

    def __call__(self, error: Optional[BaseException] = None, result: Any = None) -> None:
        self.calls.append((error, result))

    @property
    def called(self) -> bool:
        return bool(self.calls)

    def unwrap(self) -> Any:
        """Return the last delivered result, or raise the last delivered error."""
        if not self.calls:
            raise RuntimeError("Handler terminated without delivering a response")
        error, result = self.calls[-1]
        if error is not None:
            raise error
        return result


async def _settle(value: Any) -> Any:
    """Await the value if it is awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value


class Handler:
    """
    Provides common functionality for lambda handlers.

    Subclasses may override init(), process(), cleanup() and respond(); any of
    them may return an awaitable.
    """

    # should_profile policies usable directly as options.
    always = staticmethod(strategies.always)
    never = staticmethod(strategies.never)

    @staticmethod
    def should_profile(handler: "Handler") -> bool:
        """Default should_profile policy, driven by options.profile_strategy."""
        return strategies.should_profile(handler)

    @classmethod
    def default_options(cls) -> HandlerOptions:
        """Options used when the caller overrides nothing."""
        return HandlerOptions.resolve(None, default_should_profile=cls.should_profile)

    @classmethod
    def create(
        cls,
        processor: Callable[["Handler"], Any],
        options: OptionsArg = None,
        environment: Optional[ExecutionEnvironment] = None,
    ) -> Callable[..., Any]:
        """
        Create a function to be used as a lambda handler.

        Usage:
            handler = Handler.create(
                lambda h: {"statusCode": 200, "body": json.dumps(h.event)},
                {"profile_strategy": "PERCENTAGE", "profile_percentage": 5},
            )

        Args:
            processor: Function performing the primary task of the lambda. It
                receives the Handler instance and returns the response (or an
                awaitable resolving to it).
            options: HandlerOptions or a mapping of option names
            environment: Execution environment shared by the invocations of the
                returned function. A new one is created when omitted.

        Returns:
            A function accepting (event, context, callback=None). With a
            callback, the response is delivered through it and the function
            returns None. Without one, the function returns the response or
            raises the error, as the Python Lambda runtime expects.

        Raises:
            ConfigurationError: If processor is not callable or options are invalid
        """
        if not callable(processor):
            raise ConfigurationError(PROCESSOR_ERROR)
        resolved = HandlerOptions.resolve(options, default_should_profile=cls.should_profile)
        env = ExecutionEnvironment() if environment is None else environment

        def lambda_handler(event: Any, context: Any, callback: Optional[Callback] = None) -> Any:
            handler = cls(processor, resolved, event, context, callback, environment=env)
            handler.invoke()
            if callback is None:
                return handler.callback.unwrap()
            return None

        lambda_handler.environment = env
        lambda_handler.options = resolved
        return lambda_handler

    @classmethod
    def create_async(
        cls,
        processor: Callable[["Handler"], Any],
        options: OptionsArg = None,
        environment: Optional[ExecutionEnvironment] = None,
    ) -> Callable[..., Awaitable[Any]]:
        """Like create(), but returns a coroutine function for hosts running an event loop."""
        if not callable(processor):
            raise ConfigurationError(PROCESSOR_ERROR)
        resolved = HandlerOptions.resolve(options, default_should_profile=cls.should_profile)
        env = ExecutionEnvironment() if environment is None else environment

        async def lambda_handler(event: Any, context: Any, callback: Optional[Callback] = None) -> Any:
            handler = cls(processor, resolved, event, context, callback, environment=env)
            await handler.invoke_async()
            if callback is None:
                return handler.callback.unwrap()
            return None

        lambda_handler.environment = env
        lambda_handler.options = resolved
        return lambda_handler

    def __init__(
        self,
        processor: Callable[["Handler"], Any],
        options: OptionsArg = None,
        event: Any = None,
        context: Any = None,
        callback: Optional[Callback] = None,
        environment: Optional[ExecutionEnvironment] = None,
    ):
        """
        Construct a handler for one invocation.

        NOTE: Handlers should normally be constructed through Handler.create(),
        which shares one ExecutionEnvironment across invocations.

        Args:
            processor: Function responsible for processing the event
            options: See Handler.create()
            event: The event passed to the lambda handler
            context: The context passed to the lambda handler
            callback: Function accepting (error, result) used to respond. A
                ResponseCollector is used when omitted.
            environment: Execution environment this invocation belongs to
        """
        if not callable(processor):
            raise ConfigurationError(PROCESSOR_ERROR)

        if not isinstance(options, HandlerOptions) or options.should_profile is None:
            options = HandlerOptions.resolve(options, default_should_profile=type(self).should_profile)

        self.processor = processor
        self.options = options
        self.event = event
        self.context = context
        self.callback = callback if callback is not None else ResponseCollector()
        self.environment = ExecutionEnvironment() if environment is None else environment
        self.request_id = request_id_of(context) or str(uuid.uuid4())

        self.profiling_enabled: Optional[bool] = None
        self.profile: Optional[str] = None
        self.stage = Stage.CREATED

        self.is_cold_start = self.environment.register_invocation()

    @property
    def deps(self) -> Deps:
        """Lazy AWS clients shared across invocations of the environment."""
        return self.environment.deps

    def invoke(self) -> None:
        """
        Run every stage and deliver the outcome.

        Stages run synchronously. Only an awaitable returned by a stage is
        driven on the environment's event loop, so synchronous processors are
        free to use asyncio themselves.

        Never raises for init, process, cleanup or respond failures; those are
        delivered through the callback. Only a failure of the raw callback in
        the final fallback propagates to the host.
        """
        error: Optional[Exception] = None
        result: Any = None

        try:
            self.stage = Stage.INITIALIZING
            self._resolve(self.init())
            self.stage = Stage.PROCESSING
            result = self._resolve(self.process())
        except Exception as e:
            error, result = self._stage_failed(e), None

        self.stage = Stage.CLEANING_UP
        try:
            self._resolve(self.cleanup())
        except Exception as e:
            if error is None:
                error, result = self._stage_failed(e), None
            else:
                self._cleanup_masked()

        for attempt in range(1, MAX_RESPONSE_ATTEMPTS + 1):
            self.stage = Stage.RESPONDING if error is None else Stage.ERROR_RESPONDING
            try:
                self._resolve(self.respond(error, result))
            except Exception as e:
                error, result = self._respond_failed(attempt, e), None
                continue
            self.stage = Stage.TERMINATED
            return

        self._fallback(error)

    async def invoke_async(self) -> None:
        """Like invoke(), awaiting stage results on the caller's running loop."""
        error: Optional[Exception] = None
        result: Any = None

        try:
            self.stage = Stage.INITIALIZING
            await _settle(self.init())
            self.stage = Stage.PROCESSING
            result = await _settle(self.process())
        except Exception as e:
            error, result = self._stage_failed(e), None

        self.stage = Stage.CLEANING_UP
        try:
            await _settle(self.cleanup())
        except Exception as e:
            if error is None:
                error, result = self._stage_failed(e), None
            else:
                self._cleanup_masked()

        for attempt in range(1, MAX_RESPONSE_ATTEMPTS + 1):
            self.stage = Stage.RESPONDING if error is None else Stage.ERROR_RESPONDING
            try:
                await _settle(self.respond(error, result))
            except Exception as e:
                error, result = self._respond_failed(attempt, e), None
                continue
            self.stage = Stage.TERMINATED
            return

        self._fallback(error)

    def _resolve(self, value: Any) -> Any:
        if inspect.isawaitable(value):
            return self.environment.run(value)
        return value

    def _stage_failed(self, error: Exception) -> Exception:
        logger.warning(f"Handler {self.request_id} failed while {self.stage.value}: {error!r}")
        return error

    def _cleanup_masked(self) -> None:
        logger.exception(f"Cleanup failed for {self.request_id} after an earlier failure")

    def _respond_failed(self, attempt: int, error: Exception) -> Exception:
        logger.warning(
            f"Respond attempt {attempt}/{MAX_RESPONSE_ATTEMPTS} failed for {self.request_id}: {error!r}"
        )
        return error

    def _fallback(self, error: Optional[Exception]) -> None:
        logger.error(f"Could not respond for {self.request_id}, invoking callback directly")
        self.stage = Stage.CALLBACK_FALLBACK
        try:
            self.callback(error, None)
        finally:
            self.stage = Stage.TERMINATED

    def init(self) -> Any:
        """Perform initialization tasks upon handler invocation."""
        try:
            self.profiling_enabled = bool(self.options.should_profile(self))
        except Exception as e:
            logger.warning(f"should_profile failed for {self.request_id}, not profiling: {e!r}")
            self.profiling_enabled = False
        self.environment.record_profiling_decision(self.profiling_enabled)
        logger.info(
            f"Invocation {self.request_id}: cold_start={self.is_cold_start} "
            f"profiling={self.profiling_enabled}"
        )
        self.start_profiling()

        if self.options.wait_for_event_loop is False:
            set_wait_for_empty_event_loop(self.context, False)

    def process(self) -> Any:
        """
        Perform the primary processing task for the handler.

        Returns:
            The response value, or an awaitable resolving to it
        """
        return self.processor(self)

    def cleanup(self) -> Any:
        """Perform cleanup tasks before responding."""
        self.stop_profiling()

    def respond(self, error: Optional[BaseException], response: Any = None) -> Any:
        """
        Handle the response.

        Args:
            error: The error raised by an earlier stage, if any
            response: The result of process()
        """
        return self.callback(error, response)

    def start_profiling(self) -> None:
        """Start profiling if it is enabled for this invocation."""
        if not self.profiling_enabled:
            return

        # Bindings are only loaded when an invocation actually profiles.
        try:
            resources = self.environment.resources.load()
            resources.profiler.start_profiling(self.request_id)
        except Exception as e:
            logger.warning(f"Could not start profiling for {self.request_id}: {e!r}")
            self.profiling_enabled = False

    def stop_profiling(self) -> None:
        """Stop profiling and store the encoded profile on the handler."""
        resources = self.environment.resources
        if not self.profiling_enabled or resources.profiler is None:
            return

        try:
            profile = resources.profiler.stop_profiling(self.request_id)
        except Exception as e:
            logger.warning(f"Could not stop profiling for {self.request_id}: {e!r}")
            return

        try:
            if resources.compressor is not None:
                self.profile = encode_profile(profile, resources.compressor)
                logger.info(f"Collected profile for {self.request_id} ({len(self.profile)} bytes)")
        except Exception:
            logger.exception(f"Could not encode profile for {self.request_id}")
        finally:
            profile.delete()
