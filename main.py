import os
import sys
import logging
import argparse

import uvloop

# Add the current directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from cli.benchmark import add_run_arguments, runner_from_args
from configuration import DEFAULT_PLOTS_DIR

# Set up logging (only if not already configured)
if not logging.root.handlers:
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


class ThrottleBenchCLI:
    """Simple CLI interface for the throttled download benchmark."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self):
        """Create the main argument parser."""
        parser = argparse.ArgumentParser(
            description='Throttled Download Benchmark CLI',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Run all stages against the default server
  python main.py run --server server:8080 --server-url http://server:8080

  # Stop reading at a known response size instead of waiting for close
  python main.py run --expected-total 1048700 --no-control

  # Generate plots from recorded samples
  python main.py visualize --parquet-file results/samples_20250101_120000.parquet
            """
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        # Run command
        add_run_arguments(subparsers.add_parser('run', help='Run all throttled stages'))

        # Visualize command
        visualize_parser = subparsers.add_parser('visualize', help='Generate plots from recorded samples')
        visualize_parser.add_argument('--parquet-file', type=str, required=True,
                                      help='Path to the Parquet file containing samples')
        visualize_parser.add_argument('--output-dir', type=str, default=DEFAULT_PLOTS_DIR,
                                      help=f'Output directory for generated plots (default: {DEFAULT_PLOTS_DIR})')

        return parser

    async def run_benchmark(self, args):
        """Run all stages and write the summary."""
        try:
            logger.info("=== Throttled Download Benchmark ===")

            runner = runner_from_args(args)
            results = await runner.run_benchmark()

            if not results['stages']:
                logger.warning("No stage produced data; see raw samples in the summary file")
            logger.info(f"Benchmark completed, summary in {results['summary_file']}")
            return 0

        except Exception as e:
            logger.error(f"Error in benchmark: {e}")
            return 1

    def run_visualize(self, args):
        """Run the visualization phase."""
        try:
            from cli.visualiser import BenchmarkVisualizer

            logger.info("=== Visualization Phase ===")

            if not os.path.exists(args.parquet_file):
                logger.error(f"Parquet file not found: {args.parquet_file}")
                return 1

            visualizer = BenchmarkVisualizer(args.parquet_file, args.output_dir)
            plots = visualizer.create_all_plots()

            if plots:
                logger.info(f"Successfully created {len(plots)} plots in {args.output_dir}")
                for plot in plots:
                    logger.info(f"  - {plot}")
                return 0
            else:
                logger.error("No plots were created")
                return 1

        except Exception as e:
            logger.error(f"Error in visualization phase: {e}")
            return 1

    def run(self, args=None):
        """Run the CLI with the given arguments."""
        if args is None:
            args = sys.argv[1:]

        parsed_args = self.parser.parse_args(args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            if parsed_args.command == 'run':
                return uvloop.run(self.run_benchmark(parsed_args))
            elif parsed_args.command == 'visualize':
                return self.run_visualize(parsed_args)
            else:
                logger.error(f"Unknown command: {parsed_args.command}")
                return 1

        except KeyboardInterrupt:
            logger.info("Operation interrupted by user")
            return 1


def main():
    """Main entry point."""
    cli = ThrottleBenchCLI()
    sys.exit(cli.run())


if __name__ == '__main__':
    main()
