from main import parse_args


def test_default_task_is_runner():
    args = parse_args([])
    assert args.task == "runner"
    assert args.config == "config/config.yml"
    assert args.max_ticks is None


def test_runner_overrides():
    args = parse_args(
        ["runner", "--config", "x.yml", "--max-ticks", "3", "--poll-ms", "10000", "--short", "5", "--long", "20", "--strategy", "percent"]
    )
    assert args.config == "x.yml"
    assert args.max_ticks == 3
    assert (args.poll_ms, args.short, args.long) == (10000, 5, 20)
    assert args.strategy == "percent"


def test_global_config_before_subcommand():
    args = parse_args(["--config", "y.yml", "test"])
    assert args.task == "test"
    assert args.config == "y.yml"
