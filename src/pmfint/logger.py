"""Package logger for integration progress, warnings and errors.
"""
import sys
import logging


class FuncNameFilter(logging.Filter):
    """Show calls made from a script's top level as <main> in log lines."""

    def filter(self, record):
        # Demo scripts log from module scope
        if record.funcName == "<module>":
            record.funcName = "main"
        return True


class Logger:
    """Log output handler class

    Notes
    -----
    This wraps the default python library :code:`logging`. Until
    :code:`setup` is called, the package logger only lets WARNING and more
    severe events through to the root handlers.

    Attributes
    ----------
    level : int
        Verbosity level of the log, corresponding to logging.level. Any log
        event message less severe than the specified level is ignored.
    log_file : str
        Path to output log file.
    format : str
        Prepended dump string for each log event. Specifies the log event
        level, the module emitting the event, the code line, and the
        enclosing function name.
    date_format : str
        Prepends the date before all log event messages.
    formatter : logging.Formatter
        Formatter handling the prepending of the information in `format` and
        `date_format` to each log event message.
    main : logging.Logger
        Package logger object.
    """

    level = None
    log_file = None
    format = " %(levelname)-8s [%(filename)s:%(lineno)d] <%(funcName)s> %(message)s"  # noqa: E501
    date_format = "%(asctime)s"
    formatter = logging.Formatter(fmt=date_format + format)
    main = logging.getLogger("pmfint")
    main.setLevel(logging.WARNING)
    main.addFilter(FuncNameFilter())
    handlers = []

    @classmethod
    def setup(cls, default_level=logging.INFO, log_file=None, verbose=False):
        """Sets up the logger object.

        If a :code:`log_file` path is provided, log event messages are output
        to it. If :code:`verbose` is set, they are also emitted to stdout.

        Parameters
        ----------
        default_level : int, optional
            Default verbosity level of the logger. Unless specified, it is
            :code:`20` (:code:`logging.INFO`).
        log_file : str, optional
            Path to output log file. If `None` or not provided, no log file
            is used.
        verbose : bool, optional
            Use :code:`default_level` and log to stdout if True, otherwise
            raise the level to :code:`30` (:code:`logging.WARNING`).
        """
        cls.level = default_level
        cls.log_file = log_file

        # Calling setup twice must not duplicate output
        for handler in cls.handlers:
            cls.main.removeHandler(handler)
            handler.close()
        cls.handlers = []

        level = default_level
        if not verbose:
            level = logging.WARNING
        cls.main.setLevel(level)

        if log_file:
            log_file_handler = logging.FileHandler(log_file)
            log_file_handler.setLevel(level)
            log_file_handler.setFormatter(cls.formatter)
            cls.main.addHandler(log_file_handler)
            cls.handlers.append(log_file_handler)
        if verbose:
            stdout_handler = logging.StreamHandler()
            stdout_handler.setLevel(level)
            stdout_handler.setStream(sys.stdout)
            stdout_handler.setFormatter(cls.formatter)
            cls.main.addHandler(stdout_handler)
            cls.handlers.append(stdout_handler)


def format_timedelta(timedelta):
    """Elapsed solve time as ``[D days ]HH:MM:SS.ffffff``."""
    hours, rem = divmod(timedelta.seconds, 3600)
    minutes, seconds = divmod(rem, 60)
    clock = f"{hours:02d}:{minutes:02d}:{seconds:02d}.{timedelta.microseconds:06d}"
    if timedelta.days:
        return f"{timedelta.days} days {clock}"
    return clock
