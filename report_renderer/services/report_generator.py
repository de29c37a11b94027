"""Report generator abstraction.

Historic engine releases expose ``generateReportHtml`` from differently named
modules and in different module shapes (ESM named export, ESM default export,
CommonJS ``module.exports``). Each resolved layout is adapted behind the
single ``ReportGenerator`` capability.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from report_renderer.errors import RenderError
from report_renderer.models.domain import ReportDocument

logger = logging.getLogger(__name__)

# Reads the report JSON from stdin and writes the generated HTML to stdout.
_NODE_BOOTSTRAP = """
const { pathToFileURL } = require('url');
let input = '';
process.stdin.setEncoding('utf8');
process.stdin.on('data', (chunk) => { input += chunk; });
process.stdin.on('end', async () => {
  try {
    const mod = await import(pathToFileURL(process.argv[1]).href);
    const generator = mod.ReportGenerator
      || (mod.default && mod.default.ReportGenerator)
      || mod.default;
    process.stdout.write(generator.generateReportHtml(JSON.parse(input)));
  } catch (err) {
    process.stderr.write(String((err && err.stack) || err));
    process.exit(1);
  }
});
"""


class ReportGenerator(Protocol):
    """Anything that can turn a report document into a complete HTML page."""

    async def generate_html(self, document: ReportDocument) -> str: ...


@dataclass(frozen=True)
class NodeReportGenerator:
    """Runs a resolved engine entry point in a Node.js subprocess."""

    entry_point: Path
    alias: str
    layout: str
    node_executable: str = "node"

    async def generate_html(self, document: ReportDocument) -> str:
        payload = json.dumps(document.payload).encode("utf-8")
        try:
            process = await asyncio.create_subprocess_exec(
                self.node_executable,
                "-e",
                _NODE_BOOTSTRAP,
                str(self.entry_point),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.entry_point.parent),
            )
            stdout_bytes, stderr_bytes = await process.communicate(payload)
        except OSError as e:
            raise RenderError(f"Could not run {self.node_executable}: {e}") from e

        if process.returncode != 0:
            stderr = stderr_bytes.decode("utf-8", errors="replace")
            logger.error(
                "Report generation failed for %s (%s layout): %s",
                self.alias,
                self.layout,
                stderr[-2000:],
            )
            raise RenderError(f"Report generation failed for {self.alias}")

        return stdout_bytes.decode("utf-8")
