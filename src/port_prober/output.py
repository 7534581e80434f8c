"""
扫描结果输出
结构化JSON记录与rich表格两种形式
"""

import json
from typing import Any, Dict, List, Optional
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import ScanResult, ScanStatus

NO_BANNER = "No banner"


def to_records(result: ScanResult) -> List[Dict[str, Any]]:
    """
    转换为结构化记录，每个扫描任务一条

    Returns:
        List[Dict]: {target, port, status, banner}，按 (target, port) 排序
    """
    return [
        {
            "target": o.task.host,
            "port": o.task.port,
            "status": o.status.value,
            "banner": o.banner or NO_BANNER,
        }
        for o in sorted(result.outcomes, key=lambda o: (o.task.host, o.task.port))
    ]


def render_json(result: ScanResult, indent: Optional[int] = 2) -> str:
    """渲染为JSON数组，空结果为 []"""
    return json.dumps(to_records(result), indent=indent, ensure_ascii=False)


def export_json(result: ScanResult, filename: str) -> None:
    """
    导出结果为JSON文件

    Args:
        result: 扫描结果
        filename: 文件名
    """
    with open(filename, "w", encoding="utf-8") as f:
        f.write(render_json(result))
        f.write("\n")


class ConsoleReporter:
    """终端结果展示"""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def format_response(self, result: ScanResult) -> None:
        """显示扫描摘要和开放端口"""
        self._display_summary(result)
        if result.open_outcomes:
            self._display_ports(result)

    def format_error(self, error: Exception) -> None:
        self.console.print(f"[bold red]扫描失败: {escape(str(error))}[/bold red]")

    def _display_summary(self, result: ScanResult) -> None:
        summary = result.summary
        summary_text = Text()
        summary_text.append(f"扫描目标: {summary.targets_scanned}\n", style="bold blue")
        summary_text.append(f"扫描端口: {summary.ports_scanned}\n", style="cyan")
        summary_text.append(f"开放端口: {summary.open_count}\n", style="green")
        summary_text.append(f"扫描耗时: {summary.duration:.2f}秒", style="dim")

        if result.status == ScanStatus.CANCELLED:
            summary_text.append("\n扫描已取消，结果不完整", style="bold yellow")
        elif result.status == ScanStatus.FAILED:
            summary_text.append(f"\n扫描失败: {result.error_message}", style="bold red")

        self.console.print(Panel(summary_text, title="扫描摘要", border_style="blue"))

    def _display_ports(self, result: ScanResult) -> None:
        """显示开放端口表格"""
        self.console.print("\n[bold]开放端口:[/bold]")

        table = Table()
        table.add_column("目标", style="cyan")
        table.add_column("端口", style="green", width=8)
        table.add_column("尝试次数", style="yellow", width=10)
        table.add_column("耗时", style="magenta", width=10)
        table.add_column("Banner", style="dim", max_width=60)

        for outcome in result.open_outcomes:
            # 截断Banner显示
            banner = outcome.banner or NO_BANNER
            if len(banner) > 60:
                banner = banner[:57] + "..."
            banner = banner.replace('\n', '\\n').replace('\r', '\\r')

            table.add_row(
                outcome.task.host,
                str(outcome.task.port),
                str(outcome.attempts),
                f"{outcome.elapsed:.2f}s",
                Text(banner),
            )

        self.console.print(table)
