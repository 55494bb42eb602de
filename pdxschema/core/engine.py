import glob
import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from pdxschema.config.loader import AnalysisOptions, Config, SchemaConfig
from pdxschema.core.analyzer import AnalysisResult, analyze_documents
from pdxschema.core.exceptions import (
    ConfigError,
    DocumentReadError,
    EmptyDocumentError,
    ParseError,
)
from pdxschema.core.parsers import get_registry, parse
from pdxschema.core.schema_analysis import SchemaAnalysis, analyze_graph
from pdxschema.models.document import Document
from pdxschema.models.metadata import FileMetadata, RunMetadata
from pdxschema.models.result import (
    Diagnostic,
    DiagnosticCode,
    SchemaReport,
    Severity,
    SourceReport,
)
from pdxschema.models.schema import SchemaGraph

logger = logging.getLogger(__name__)

# Files to skip when scanning source directories
SKIP_FILES = {".gitkeep", ".gitignore", ".DS_Store"}


def read_documents(
    paths: list[str],
    entry: Optional[str] = None,
    run_meta: Optional[RunMetadata] = None,
) -> tuple[list[Document], list[Diagnostic]]:
    """Read and parse save files one by one.

    A file that cannot be read or parsed is logged, reported as a diagnostic
    and skipped; the rest of the batch continues.
    """
    registry = get_registry()
    documents: list[Document] = []
    diagnostics: list[Diagnostic] = []

    for path in paths:
        logger.info(f"Parsing: {path}")
        started = datetime.now()
        char_count = 0
        property_count = 0
        error_msg = None

        try:
            text = registry.read_text(path, entry)
            char_count = len(text)
            document = parse(text)
            if document.is_empty:
                raise EmptyDocumentError(f"Document has no properties: {path}", path)
            property_count = len(document)
            documents.append(document)
            logger.info(f"Parsed {path}: {property_count} root properties")

        except ParseError as e:
            error_msg = str(e)
            logger.error(f"Failed to parse {path}: {e}")
            diagnostics.append(Diagnostic(
                code=DiagnosticCode.PARSE_FAILED,
                severity=Severity.ERROR,
                message=f"{os.path.basename(path)}: {e}",
            ))

        except EmptyDocumentError as e:
            error_msg = str(e)
            logger.warning(f"Empty document skipped: {path}")
            diagnostics.append(Diagnostic(
                code=DiagnosticCode.EMPTY_DOCUMENT,
                severity=Severity.WARNING,
                message=f"{os.path.basename(path)}: no content",
            ))

        except (DocumentReadError, OSError) as e:
            error_msg = str(e)
            logger.error(f"Failed to read {path}: {e}")
            diagnostics.append(Diagnostic(
                code=DiagnosticCode.PARSE_FAILED,
                severity=Severity.ERROR,
                message=f"{os.path.basename(path)}: {e}",
            ))

        if run_meta is not None:
            run_meta.record(FileMetadata(
                source_file=path,
                started_at=started,
                completed_at=datetime.now(),
                success=error_msg is None,
                char_count=char_count,
                property_count=property_count,
                archive_entry=entry,
                error=error_msg,
            ))

    return documents, diagnostics


def resolve_sources(patterns: list[str]) -> list[str]:
    """Expand source paths, directories and globs into a sorted, de-duplicated file list."""
    files: list[str] = []
    for pattern in patterns:
        if os.path.isdir(pattern):
            files.extend(str(p) for p in _get_source_files(Path(pattern)))
            continue
        matches = glob.glob(pattern, recursive=True)
        if not matches and os.path.isfile(pattern):
            matches = [pattern]
        files.extend(m for m in matches if os.path.isfile(m) and os.path.basename(m) not in SKIP_FILES)
    return sorted(dict.fromkeys(files))


def _get_source_files(sources_path: Path) -> list[Path]:
    """Get list of source files, handling both files and directories recursively."""
    source_files = []
    for item in sources_path.iterdir():
        if item.is_file() and item.name not in SKIP_FILES:
            source_files.append(item)
        elif item.is_dir():
            source_files.extend(_get_source_files(item))
    return source_files


class SchemaTool:
    def __init__(self, config: Config):
        self.config = config
        self.logger = logging.getLogger(__name__)

    def run(self, schema_name: Optional[str] = None) -> list[SchemaReport]:
        """Main execution flow: Read saves -> Parse -> Infer schema -> Write JSON.

        Args:
            schema_name: If provided, only run this schema.
                        If None, run all schemas.
        """
        schemas = self._get_schemas_to_run(schema_name)
        self.logger.info(f"Running {len(schemas)} schema inference(s)")
        return [self._run_schema(schema_config) for schema_config in schemas]

    def _get_schemas_to_run(self, schema_name: Optional[str]) -> list[SchemaConfig]:
        """Get list of schemas to run based on optional filter."""
        if schema_name:
            schema_config = self.config.get_schema(schema_name)
            if not schema_config:
                available = [s.name for s in self.config.schemas]
                raise ConfigError(
                    f"Schema '{schema_name}' not found. "
                    f"Available: {', '.join(available)}"
                )
            return [schema_config]
        return self.config.schemas

    def _run_schema(self, schema_config: SchemaConfig) -> SchemaReport:
        """Run a single schema inference."""
        run_meta = RunMetadata(schema_name=schema_config.name, started_at=datetime.now())

        paths = resolve_sources(schema_config.source_patterns)
        if not paths:
            self.logger.warning(
                f"No source files for '{schema_config.name}' in "
                f"{', '.join(schema_config.source_patterns)}"
            )
        documents, read_diagnostics = read_documents(paths, schema_config.entry, run_meta)

        result = analyze_documents(documents, schema_config.root_name, self.config.analysis)
        run_meta.completed_at = datetime.now()
        run_meta.types_created = len(result.graph.types)
        run_meta.diagnostics = len(read_diagnostics) + len(result.diagnostics)

        report = build_report(schema_config.name, result, read_diagnostics, run_meta)
        write_report(report, schema_config.output_path)

        self.logger.info(
            f"{schema_config.name}: {run_meta.files_succeeded}/{run_meta.files_processed} files, "
            f"{run_meta.types_created} types, {run_meta.diagnostics} diagnostics "
            f"in {run_meta.duration_ms} ms"
        )
        return report

    def summarize(self, schema_name: Optional[str] = None) -> list[SchemaAnalysis]:
        """Analyze the schema JSON files written by earlier runs."""
        analyses = []
        for schema_config in self._get_schemas_to_run(schema_name):
            output_path = schema_config.output_path
            if not os.path.exists(output_path):
                self.logger.warning(
                    f"No schema written yet for '{schema_config.name}' ({output_path})"
                )
                continue
            report = load_report(output_path)
            graph = SchemaGraph.from_dict(report.graph_dict())
            analyses.append(analyze_graph(graph, schema_config.name))
        return analyses


def analyze_files(
    paths: list[str],
    root_name: str = "Root",
    options: Optional[AnalysisOptions] = None,
    entry: Optional[str] = None,
) -> SchemaReport:
    """Ad-hoc run over explicit files, without a config file."""
    run_meta = RunMetadata(schema_name=root_name, started_at=datetime.now())
    documents, read_diagnostics = read_documents(paths, entry, run_meta)
    result = analyze_documents(documents, root_name, options)
    run_meta.completed_at = datetime.now()
    return build_report(root_name, result, read_diagnostics, run_meta)


def build_report(
    schema_name: str,
    result: AnalysisResult,
    read_diagnostics: list[Diagnostic],
    run_meta: RunMetadata,
) -> SchemaReport:
    sources = [
        SourceReport(
            source_file=f.source_file,
            success=f.success,
            char_count=f.char_count,
            duration_ms=f.duration_ms,
            error=f.error,
        )
        for f in run_meta.files
    ]
    return SchemaReport.from_graph(
        schema_name,
        result.graph,
        read_diagnostics + result.diagnostics,
        sources,
    )


def write_report(report: SchemaReport, output_path: str) -> None:
    """Write a schema report as indented JSON, creating parent directories."""
    parent = os.path.dirname(output_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(report.to_output_dict(), f, indent=2)
    logger.info(f"Wrote schema to {output_path}")


def load_report(path: str) -> SchemaReport:
    with open(path, "r", encoding="utf-8") as f:
        return SchemaReport.from_output_dict(json.load(f))
