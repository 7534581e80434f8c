"""
端口探测CLI
"""

import click
from pydantic import ValidationError
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from . import __version__
from .exceptions import ConfigError
from .logger_config import configure_logger, logger
from .models import ScanConfig, ScanOutcome
from .output import ConsoleReporter, export_json, render_json
from .service import ScanService
from .targets import resolve_targets

# 进度条与日志走 stderr，stdout 只输出扫描结果
console = Console()
err_console = Console(stderr=True)


def build_config(target, targets, start_port, end_port, ports, workers, timeout,
                 retries, no_banner, deadline) -> ScanConfig:
    """
    由命令行参数构建扫描配置

    Raises:
        ConfigError: 目标为空或配置值无效
    """
    hosts = resolve_targets(target, targets)
    try:
        return ScanConfig(
            targets=hosts,
            start_port=start_port,
            end_port=end_port,
            extra_ports=ports or "",
            workers=workers,
            timeout=timeout,
            max_retries=retries,
            grab_banner=not no_banner,
            deadline=deadline,
        )
    except ValidationError as e:
        errors = "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors())
        raise ConfigError(f"配置无效: {errors}") from e


@click.group()
@click.version_option(__version__, prog_name="port-prober")
def cli():
    """TCP端口可达性探测工具

    并发探测 目标 × 端口，失败按指数退避重试，开放端口尝试读取Banner
    """
    pass


@cli.command()
@click.option('--target', default=None, help='单个目标IP或域名（优先于 --targets）')
@click.option('--targets', default='scanme.nmap.org', show_default=True, help='逗号分隔的目标列表')
@click.option('--start-port', default=1, show_default=True, type=int, help='起始端口')
@click.option('--end-port', default=22, show_default=True, type=int, help='结束端口')
@click.option('--ports', default='', help='额外端口，逗号分隔 (例如: 80,443,8080)')
@click.option('--workers', '-w', default=200, show_default=True, type=int, help='并发worker数')
@click.option('--timeout', '-t', default=5, show_default=True, type=int, help='连接超时时间(秒)')
@click.option('--retries', default=3, show_default=True, type=int, help='最大连接尝试次数')
@click.option('--no-banner', is_flag=True, help='不读取Banner')
@click.option('--deadline', default=None, type=float, help='整体扫描截止时间(秒)')
@click.option('--json', 'json_output', is_flag=True, help='以JSON格式输出结果')
@click.option('-o', '--output', default=None, help='保存JSON结果到文件')
@click.option('-q', '--quiet', is_flag=True, help='不显示进度')
@click.option('-v', '--verbose', is_flag=True, help='详细日志')
def scan(target, targets, start_port, end_port, ports, workers, timeout, retries,
         no_banner, deadline, json_output, output, quiet, verbose):
    """扫描目标端口

    示例:
      port-prober scan --target 192.168.1.1 --start-port 20 --end-port 25
      port-prober scan --targets a.com,b.com --ports 80,443 --json
    """
    if verbose:
        configure_logger(level="DEBUG")

    try:
        config = build_config(target, targets, start_port, end_port, ports, workers,
                              timeout, retries, no_banner, deadline)
        service = ScanService(config)

        if quiet:
            result = service.scan_sync(config)
        else:
            result = _scan_with_progress(service, config)
    except ConfigError as e:
        raise click.ClickException(str(e))

    if json_output:
        click.echo(render_json(result))
    else:
        ConsoleReporter(console).format_response(result)

    if output:
        export_json(result, output)
        if not json_output:
            console.print(f"\n[green]结果已保存到: {output}[/green]")

    logger.debug(f"扫描 {result.scan_id} 结束，状态: {result.status.value}")


def _scan_with_progress(service: ScanService, config: ScanConfig):
    """带进度条执行扫描"""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=err_console,
        transient=True,
    ) as progress:
        progress_task = progress.add_task("扫描中...", total=None)

        def progress_callback(scanned: int, total: int, outcome: ScanOutcome) -> None:
            progress.update(progress_task, completed=scanned, total=total,
                            description=f"扫描 {outcome.task}")

        return service.scan_sync(config, progress_callback)


@cli.command()
def info():
    """显示默认扫描配置"""
    config = ScanConfig()
    click.echo("📊 默认配置:")
    click.echo(f"  • 目标: {', '.join(config.targets)}")
    click.echo(f"  • 端口范围: {config.start_port}-{config.end_port}")
    click.echo(f"  • Worker数: {config.workers}")
    click.echo(f"  • 队列容量: {config.queue_size}")
    click.echo(f"  • 连接超时: {config.timeout:.1f}秒")
    click.echo(f"  • 最大尝试次数: {config.max_retries}")
    click.echo(f"  • 退避基数: {config.backoff_base:.1f}秒 (指数退避)")
    click.echo(f"  • Banner读取: {'启用' if config.grab_banner else '禁用'} ({config.banner_timeout:.1f}秒)")


def main():
    """CLI入口点"""
    cli()


if __name__ == '__main__':
    main()
