# podflow/core/cli.py
"""
CLI for running and validating podflow workflow files.

    podflow run workflow.yaml
    podflow check workflow.yaml
"""

import argparse
import sys

from podflow.core.app import build_dispatcher
from podflow.core.errors import PodflowError
from podflow.core.logging import get_logger, setup_logging
from podflow.core.models.config import ExecutorConfig
from podflow.core.types.status import NodeStatus
from podflow.core.workflows.definition import load_workflow
from podflow.core.workflows.runner import WorkflowRunner


def _load_config(args: argparse.Namespace) -> ExecutorConfig:
    return ExecutorConfig.from_env(
        ready_timeout_s=getattr(args, 'timeout', None),
        kubeconfig=getattr(args, 'kubeconfig', None),
        context=getattr(args, 'context', None),
        root_label=getattr(args, 'root', None),
        loglevel=args.loglevel,
    )


def run_command(args: argparse.Namespace) -> None:
    """Handle run command."""
    logger = get_logger('cli')
    setup_logging(args.loglevel)

    try:
        cfg = _load_config(args)
        workflow = load_workflow(args.workflow, root_label=cfg.root_label)
    except PodflowError as e:
        logger.error(str(e))
        sys.exit(1)

    try:
        dispatcher = build_dispatcher(cfg)
    except Exception as e:
        logger.error(f'Failed to connect to cluster: {e}')
        sys.exit(1)

    logger.info(f'Running {len(workflow.nodes)} node(s) from {args.workflow}')
    summary = WorkflowRunner(dispatcher).run(workflow)

    for name, error in summary.errors.items():
        logger.error(f'{name}: {error}')
    skipped = summary.nodes_with(NodeStatus.SKIPPED)
    if skipped:
        logger.warning(f'Skipped: {", ".join(skipped)}')

    if not summary.succeeded:
        sys.exit(1)
    logger.info('Workflow completed')
    sys.exit(0)


def check_command(args: argparse.Namespace) -> None:
    """Handle check command: validate the workflow file without a cluster."""
    logger = get_logger('cli')
    setup_logging(args.loglevel)

    try:
        cfg = _load_config(args)
        workflow = load_workflow(args.workflow, root_label=cfg.root_label)
    except PodflowError as e:
        print(e.format_rust_style(), file=sys.stderr)
        sys.exit(1)

    order = [node.display_name for node in workflow.task_nodes()]
    logger.debug(f'Execution order: {order}')
    print(f'ok: workflow is valid\n  {len(order)} node(s): {" -> ".join(order)}')
    sys.exit(0)


def _add_common_arguments(
    parser: argparse.ArgumentParser, default_loglevel: str
) -> None:
    parser.add_argument('workflow', help='Path to the workflow YAML file')
    parser.add_argument(
        '--root',
        default=None,
        help='Name of the workflow root mapping (default: workflow)',
    )
    parser.add_argument(
        '--loglevel',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        default=default_loglevel,
        type=str.upper,
        help=f'Logging level (default: {default_loglevel})',
    )


def main() -> None:
    """Main CLI entry point."""
    try:
        parser = argparse.ArgumentParser(
            prog='podflow',
            description='Run workflow graphs of Kubernetes resources and shell scripts',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Execute every node, waiting for applied pods to reach Running
  podflow run flows/deploy.yaml

  # Bound each readiness wait to five minutes
  podflow run flows/deploy.yaml --timeout 300

  # Validate structure and print the execution order
  podflow check flows/deploy.yaml
""",
        )
        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        run_parser = subparsers.add_parser(
            'run',
            help='Execute a workflow against the current cluster',
        )
        _add_common_arguments(run_parser, 'INFO')
        run_parser.add_argument(
            '--timeout',
            type=float,
            default=None,
            help='Readiness wait limit in seconds (default: wait forever)',
        )
        run_parser.add_argument(
            '--kubeconfig',
            default=None,
            help='Path to a kubeconfig file (default: $KUBECONFIG or ~/.kube/config)',
        )
        run_parser.add_argument(
            '--context',
            default=None,
            help='Kubeconfig context to use',
        )

        check_parser = subparsers.add_parser(
            'check',
            help='Validate a workflow file without touching the cluster',
        )
        _add_common_arguments(check_parser, 'WARNING')

        args = parser.parse_args()

        match args.command:
            case 'run':
                run_command(args)
            case 'check':
                check_command(args)
            case _:
                parser.print_help()
                sys.exit(1)
    except KeyboardInterrupt:
        print('\nInterrupted by user')
        sys.exit(130)


if __name__ == '__main__':
    main()
