#!/usr/bin/env python3
"""
Apothesis - Ancient Greek ἀπόθεσις (putting away, laying aside)

A resumable file quarantine tool. It crawls a large directory tree, classifies
every file by its content, and moves the selected files into a quarantine tree
that mirrors their original layout. Nothing is ever deleted or overwritten.

Two classifiers are available, one per run:
- signature: finds Windows PE executables and quarantines every match
- digest:    hashes file contents and quarantines all but the first copy of
             each set of identical files

Work is checkpointed to an XML state file so an interrupted run (Ctrl+C, crash)
can resume without re-scanning or re-classifying what is already known.

Workflow:
1. discover  - reconcile the state with the filesystem, queue new files
2. classify  - inspect queued files one at a time, checkpointing periodically
3. relocate  - move the selection under the destination root (or list it)
"""

import argparse
import collections
import logging
import os
import pathlib
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from rich.markup import escape

from apothesis_config import ApothesisConfig, ConfigManager
from auxiliary import format_duration, format_path_for_display
from cancellation import CancellationController
from checkpoint import CheckpointStore
from classifiers import HASH_ALGORITHMS, create_classifier
from console_ui import ConsoleUI
from crawler import CrawlResult, IncrementalCrawler
from path_tree import FileRecord, PathTree
from quarantine import QuarantineMover, RelocationResult
from selection import KeepFirstPerDigestSelection

logger = logging.getLogger(__name__)

CLASSIFIER_KINDS = ("signature", "digest")

# Windows-style switches, matched case-insensitively
SLASH_FLAGS = {
    "/r": "--root",
    "/root": "--root",
    "/o": "--root",
    "/originals": "--root",
    "/res": "--resume",
    "/resume": "--resume",
    "/st": "--state",
    "/state": "--state",
    "/skip": "--skip",
    "/d": "--destination-root",
    "/destinationroot": "--destination-root",
    "/c": "--classifier",
    "/classifier": "--classifier",
    "/hash": "--hash",
    "/v": "--verbose",
    "/verbose": "--verbose",
    "/?": "--help",
    "/h": "--help",
    "/help": "--help",
}

VALUE_FLAGS = {
    "-r": "--root",
    "--root": "--root",
    "--state": "--state",
    "-d": "--destination-root",
    "--destination-root": "--destination-root",
    "-c": "--classifier",
    "--classifier": "--classifier",
    "--hash": "--hash",
}


@dataclass
class ClassificationStats:
    """Outcome of draining the classification queue"""

    classified: int = 0
    left_pending: int = 0
    failed: list[tuple[str, str]] = field(default_factory=list)
    cancelled: bool = False

    @property
    def processed(self) -> int:
        return self.classified + self.left_pending + len(self.failed)


def translate_arguments(argv: list[str]) -> list[str]:
    """Map slash switches onto their POSIX spellings

    Option values are attached with '=' so values starting with '-' or '/'
    are never mistaken for options.
    """
    translated: list[str] = []
    pending_option: Optional[str] = None

    for token in argv:
        if pending_option:
            translated.append(f"{pending_option}={token}")
            pending_option = None
            continue

        option = SLASH_FLAGS.get(token.lower(), token)
        if option in VALUE_FLAGS:
            pending_option = VALUE_FLAGS[option]
        else:
            translated.append(option)

    if pending_option:
        translated.append(pending_option)  # argparse reports the missing value
    return translated


class Apothesis:
    """Main application class running the discover / classify / relocate phases"""

    def __init__(
        self,
        args: argparse.Namespace,
        ui: Optional[ConsoleUI] = None,
        config_manager: Optional[ConfigManager] = None,
        cancellation: Optional[CancellationController] = None,
    ):
        self.args = args
        self.ui = ui or ConsoleUI()
        self.config_manager = config_manager or ConfigManager()
        self.config: ApothesisConfig = self.config_manager.load()
        self.cancellation = cancellation or CancellationController()

        self.root_path = os.path.abspath(args.root)
        self.destination_root = os.path.abspath(args.destination_root) if args.destination_root else None
        self.state_path = pathlib.Path(args.state or self.config.state_file)

        self.classifier = create_classifier(
            args.classifier,
            hash_algorithm=getattr(args, "hash", None) or self.config.hash_algorithm,
            chunk_size=self.config.chunk_size,
        )
        self.checkpoint = CheckpointStore(self.state_path, self.classifier)
        self.tree = PathTree(self.root_path)
        self.queue: collections.deque[FileRecord] = collections.deque()
        self.selection = self.classifier.create_selection()

    def show_configuration(self):
        """Show the effective configuration for this run"""
        config = {
            "Root": self.root_path,
            "Classifier": self.classifier.describe(),
            "State file": str(self.state_path),
            "Resume": "Yes" if self.args.resume else "No",
            "Check filesystem": "No" if self.args.skip else "Yes",
            "Destination root": self.destination_root or "none (list only)",
        }
        if self.config.last_run:
            config["Last run"] = self.config.last_run
        self.ui.show_configuration(config)

    # -- setup ---------------------------------------------------------------

    def validate_ready_to_begin(self) -> bool:
        """Check the root exists and the destination root can be created"""
        if not os.path.isdir(self.root_path):
            self.ui.print_error(f"Root directory '{escape(self.root_path)}' wasn't found")
            return False

        if self.destination_root:
            try:
                pathlib.Path(self.destination_root).mkdir(parents=True, exist_ok=True)
            except OSError as e:
                self.ui.print_error(f"Unable to create destination root '{escape(self.destination_root)}': {escape(str(e))}")
                return False

        return True

    def dispatch(self, record: FileRecord):
        """Queue a pending record for classification, or feed a resolved one to the selection"""
        if record.is_pending:
            self.queue.append(record)
        else:
            self.selection.add(record)

    def save_state(self) -> bool:
        """Write a checkpoint of the current tree"""
        with self.cancellation.lock:
            try:
                self.checkpoint.save(self.tree)
                return True
            except OSError as e:
                logger.error("Unable to save state to %s: %s", self.state_path, e)
                return False

    def load_state(self):
        """Seed the tree from the checkpoint when resuming"""
        if not self.args.resume:
            return

        if not self.checkpoint.exists():
            self.ui.print_info("State file not found, loading information from the file system")
            return

        start = time.monotonic()
        self.ui.print_info("Loading saved state")
        tree = self.checkpoint.load(self.root_path)
        if tree is None:
            return  # CheckpointStore.load already reported why

        self.tree = tree
        for record in self.tree.iter_files():
            self.dispatch(record)
        self.ui.print_info(
            f"State loaded in {format_duration(time.monotonic() - start)}: "
            f"{len(self.queue):,} files pending, {self.tree.file_count - len(self.queue):,} classified"
        )

    # -- phase 1: discovery --------------------------------------------------

    def discover(self) -> CrawlResult:
        """Reconcile the tree with the filesystem and queue new files"""
        start = time.monotonic()

        with self.ui.status_line("Discovering files...", self.config.progress_interval) as status:
            crawler = IncrementalCrawler(
                self.tree,
                exclude_root=self.destination_root,
                shutdown_requested=self.cancellation.is_cancelled,
                progress_callback=status,
            )
            result = crawler.crawl()

        for record in result.discovered:
            self.dispatch(record)

        if result.discovered_count:
            self.ui.print_info(f"New files added: {result.discovered_count:,}")
        if result.skipped_directories:
            self.ui.print_warning(f"Skipped {len(result.skipped_directories):,} unreadable folders")
        self.ui.print_info(
            f"State validated in {format_duration(time.monotonic() - start)} "
            f"({result.directories_scanned:,} folders scanned)"
        )
        return result

    # -- phase 2: classification ---------------------------------------------

    def classify_record(self, record: FileRecord, stats: ClassificationStats) -> bool:
        """Classify one record, leaving it pending if it cannot be read

        Returns:
            True if the record was resolved
        """
        file_path = self.tree.absolute_path(record)
        try:
            fingerprint = self.classifier.classify_file(pathlib.Path(file_path))
        except (PermissionError, FileNotFoundError) as e:
            logger.debug("Leaving %s pending: %s", file_path, e)
            stats.left_pending += 1
            return False
        except OSError as e:
            logger.warning("Couldn't inspect: %s (%s)", file_path, e)
            stats.failed.append((file_path, str(e)))
            return False

        record.classification = fingerprint
        self.selection.add(record)
        stats.classified += 1
        return True

    def classify_pending(self) -> ClassificationStats:
        """Drain the classification queue in FIFO order"""
        stats = ClassificationStats()
        if not self.queue:
            self.ui.print_info("No files needed inspecting")
            return stats

        start = time.monotonic()
        self.ui.print_info(f"Inspecting {len(self.queue):,} file(s). Starting at: {datetime.now():%Y-%m-%d %H:%M:%S}")

        since_last_save = 0
        with self.ui.status_line("Inspecting files...", self.config.progress_interval) as status:
            while self.queue:
                if self.cancellation.is_cancelled():
                    stats.cancelled = True
                    break

                if since_last_save >= self.config.save_interval:
                    self.save_state()
                    since_last_save = 0

                record = self.queue.popleft()
                status.update(f"Inspecting file: {self.tree.absolute_path(record)}")
                if self.classify_record(record, stats):
                    since_last_save += 1

        if stats.cancelled:
            self._announce_cancellation()
        if stats.processed > 0 or stats.cancelled:
            self.save_state()

        self.ui.print_info(f"Inspecting {stats.processed:,} file(s) took {format_duration(time.monotonic() - start)}")
        if stats.failed:
            self.ui.print_warning(f"Could not inspect {len(stats.failed):,} file(s)")
        return stats

    # -- phase 3: relocation -------------------------------------------------

    def show_selection(self, selected: list[FileRecord]):
        """List the selection when there is no destination to move it to"""
        if isinstance(self.selection, KeepFirstPerDigestSelection):
            groups = {
                group[0].classification.hex: [self.tree.absolute_path(record) for record in group]
                for group in self.selection.duplicate_groups()
            }
            self.ui.show_grouped_files(groups, title="Duplicate groups (first file is kept)")
        else:
            self.ui.show_file_list([self.tree.absolute_path(record) for record in selected], "Files with PE headers")

    def relocate(self) -> Optional[RelocationResult]:
        """Move the selection into the destination root, or list it"""
        selected = self.selection.select()
        if not selected:
            self.ui.print_info("No files selected for quarantine")
            return None

        self.ui.print_info(f"Files selected for quarantine: {len(selected):,}")

        if not self.destination_root:
            self.ui.print_info("Not moving files, no destination root given")
            self.show_selection(selected)
            return None

        with self.ui.status_line("Moving files...", self.config.progress_interval) as status:
            mover = QuarantineMover(
                self.tree,
                pathlib.Path(self.destination_root),
                shutdown_requested=self.cancellation.is_cancelled,
                progress_callback=status,
            )
            result = mover.relocate(selected)

        if result.cancelled:
            self._announce_cancellation()
        if result.processed_count > 0 or result.cancelled:
            self.save_state()

        self.ui.print_info(f"Files moved: {len(result.moved):,}")
        self.ui.show_operation_summary(
            [outcome.move.identifier for outcome in result.moved],
            [(outcome.move.identifier, outcome.error_message or "") for outcome in result.skipped + result.failed],
            operation_name="moved",
        )
        return result

    # -- main entry point ----------------------------------------------------

    def _announce_cancellation(self):
        self.ui.print_warning("Cancellation requested, saving state... press Ctrl+C again to force quit.")

    def _report_cancelled(self):
        self.ui.print_warning("Execution cancelled: state saved for resuming later")

    def _record_run(self, classified: int, moved: int):
        self.config.record_run(classified, moved)
        try:
            self.config_manager.save(self.config)
        except OSError as e:
            logger.warning("Unable to save configuration: %s", e)

    def run(self) -> bool:
        """Run all phases; returns False only when the run could not start"""
        self.ui.print_header("Apothesis", f"Quarantining by {self.classifier.describe()}")
        self.ui.print_plain(f"Root: {format_path_for_display(self.root_path)}")

        if not self.validate_ready_to_begin():
            return False

        self.load_state()

        if not self.args.skip:
            crawl = self.discover()
            if crawl.cancelled:
                self._announce_cancellation()
            if crawl.discovered_count > 0 or crawl.cancelled:
                self.save_state()
            if crawl.cancelled:
                self._report_cancelled()
                return True

        elif self.tree.is_empty:
            self.ui.print_warning("Filesystem check skipped and no saved state loaded, nothing to inspect")

        stats = self.classify_pending()
        if stats.cancelled:
            self._report_cancelled()
            self._record_run(stats.classified, 0)
            return True

        result = self.relocate()
        moved = len(result.moved) if result else 0
        if result and result.cancelled:
            self._report_cancelled()

        self._record_run(stats.classified, moved)
        return True


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def build_parser(prog: str = "apothesis", classifier: Optional[str] = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Apothesis - resumable content-based file quarantine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
        epilog="""
Switches may also be written Windows-style: /r[oot], /res[ume], /st[ate],
/skip, /d[estinationroot], /c[lassifier], /hash, /v[erbose].

Examples:
  apothesis-pe /r D:\\Downloads /d D:\\Quarantine
  apothesis-dedup --root ~/Photos --destination-root ~/Duplicates --resume
  apothesis --classifier digest --hash sha256 --root /srv/share --skip --resume
        """,
    )
    parser.add_argument("-r", "--root", help="Root path to start the search from")
    parser.add_argument(
        "--resume",
        action="store_true",
        help="Load the state file and continue from it, checking the file system for new files",
    )
    parser.add_argument("--state", type=pathlib.Path, help="State file path (default: state.xml in the working directory)")
    parser.add_argument(
        "--skip", action="store_true", help="Skip the file system check and only use the saved state to determine work"
    )
    parser.add_argument(
        "-d",
        "--destination-root",
        help="Directory to move selected files into; excluded from the crawl. Without it files are only listed",
    )
    if classifier is None:
        parser.add_argument(
            "-c", "--classifier", choices=CLASSIFIER_KINDS, default="digest", help="Classification strategy"
        )
    else:
        parser.set_defaults(classifier=classifier)
    parser.add_argument("--hash", choices=HASH_ALGORITHMS, help="Digest algorithm (default from config: md5)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug output")
    return parser


def main(argv: Optional[list[str]] = None, classifier: Optional[str] = None, prog: str = "apothesis") -> int:
    """Main entry point"""
    argv = sys.argv[1:] if argv is None else argv
    parser = build_parser(prog, classifier)
    ui = ConsoleUI()

    if len(argv) < 2:
        ui.console.print(parser.format_help(), markup=False)
        return 0

    args = parser.parse_args(translate_arguments(argv))
    if not args.root:
        ui.console.print(parser.format_help(), markup=False)
        return 0

    ui.attach_logging(logging.DEBUG if args.verbose else logging.INFO)

    cancellation = CancellationController()
    cancellation.install_signal_handlers()

    app = Apothesis(args, ui=ui, cancellation=cancellation)
    app.show_configuration()
    return 0 if app.run() else 1


def main_signature() -> int:
    """Entry point quarantining PE executables"""
    return main(classifier="signature", prog="apothesis-pe")


def main_digest() -> int:
    """Entry point quarantining duplicate files"""
    return main(classifier="digest", prog="apothesis-dedup")


if __name__ == "__main__":
    sys.exit(main())
