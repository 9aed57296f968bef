"""CLI Output - rich tables for estimates, providers and configuration"""

from typing import List, Optional

from rich.console import Console
from rich.table import Table

from ..geo_core.config import EngineConfig
from ..geo_core.models import ConfidenceTier, GeoEstimate

TIER_STYLES = {
    ConfidenceTier.EXATA: "bold green",
    ConfidenceTier.MUITO_ALTA: "green",
    ConfidenceTier.ALTA: "cyan",
    ConfidenceTier.MEDIA: "yellow",
    ConfidenceTier.SINGLE_SOURCE: "red",
}


def _meters(value: Optional[float]) -> str:
    if value is None:
        return "N/A"
    if value >= 1000:
        return f"{value / 1000:.1f} km"
    return f"{value:.0f} m"


def format_summary_table(estimate: GeoEstimate) -> Table:
    """Key/value summary of one estimate"""
    table = Table(title=f"Geolocation: {estimate.requested_ip}", show_header=False, title_style="bold")
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value")

    if not estimate.available:
        table.add_row("Status", f"[red]unavailable ({estimate.unavailable_reason})[/red]")
        table.add_row("Sources queried", str(estimate.sources_queried))
        if estimate.unavailable_sources:
            table.add_row("Failed sources", ", ".join(estimate.unavailable_sources))
        return table

    style = TIER_STYLES.get(estimate.confidence_tier, "white")
    location = ", ".join(part for part in (estimate.city, estimate.region, estimate.country) if part)
    table.add_row("Location", location or "?")
    table.add_row("Coordinates", f"{estimate.lat:.5f}, {estimate.lon:.5f}")
    table.add_row("Confidence", f"[{style}]{estimate.confidence_tier.value}[/{style}] ({estimate.accuracy_label})")
    table.add_row("Accuracy", f"p68 {_meters(estimate.p68_radius_m)} / p95 {_meters(estimate.p95_radius_m)} "
                              f"/ max {_meters(estimate.max_radius_m)}")
    table.add_row("Agreement", f"{estimate.sources_agree} of {estimate.sources_succeeded} responding "
                               f"({estimate.sources_queried} queried)")
    table.add_row("Divergence", f"max {estimate.max_divergence_km:.1f} km, avg {estimate.avg_divergence_km:.1f} km, "
                                f"global {estimate.global_divergence_km:.1f} km")
    if estimate.zip_confirmed:
        table.add_row("Postal code", f"{estimate.confirmed_zip} (confirmed)")
    table.add_row("ISP", f"{estimate.isp or '?'} {estimate.asn}".strip() + f" [{estimate.isp_type.value}]")
    flags = [name for name, on in (("vpn", estimate.is_vpn), ("proxy", estimate.is_proxy),
                                   ("hosting", estimate.is_hosting)) if on]
    if flags:
        table.add_row("Flags", f"[yellow]{', '.join(flags)}[/yellow]")
    if estimate.outlier_sources:
        table.add_row("Outliers", ", ".join(estimate.outlier_sources))
    if estimate.unavailable_sources:
        table.add_row("Failed sources", ", ".join(estimate.unavailable_sources))
    table.add_row("IWCR", f"{estimate.iwcr_rounds} round(s), last shift {estimate.iwcr_convergence_delta_m:.1f} m")
    return table


def format_sources_table(estimate: GeoEstimate) -> Table:
    """Per-source audit rows"""
    table = Table(title="Sources", show_header=True, header_style="bold magenta")
    for column in ("Source", "City", "Lat", "Lon", "Dist km", "Weight", "Eff.", "Zip", "Status"):
        table.add_column(column, style="cyan" if column == "Source" else None)

    for detail in estimate.source_list:
        if detail.country_filtered:
            status = "[red]country[/red]"
        elif detail.in_cluster:
            status = "[green]cluster[/green]"
        else:
            status = "[yellow]outlier[/yellow]"
        if detail.vpn:
            status += " [magenta]vpn[/magenta]"
        table.add_row(
            detail.source, detail.city, f"{detail.lat:.4f}", f"{detail.lon:.4f}",
            f"{detail.distance_to_avg_km:.1f}", f"{detail.weight:.2f}",
            f"{detail.effective_weight:.2f}{'*' if detail.refined else ''}",
            detail.zip or "-", status,
        )
    return table


def render_estimate(estimate: GeoEstimate, console: Console) -> None:
    console.print(format_summary_table(estimate))
    if estimate.source_list:
        console.print(format_sources_table(estimate))


def format_providers_table(names: List[str], config: EngineConfig) -> Table:
    table = Table(title="Geolocation Providers", show_header=True, header_style="bold magenta")
    table.add_column("Provider", style="cyan")
    table.add_column("Weight", justify="right")
    table.add_column("Timeout", justify="right")
    table.add_column("Enabled")

    configured = {p.name: p for p in config.providers}
    for name in names:
        settings = configured.get(name)
        enabled = settings is not None and settings.enabled
        timeout = config.timeout_for(settings) if settings else config.provider_timeout
        table.add_row(name, f"{config.weight_for(name):.2f}", f"{timeout:.1f}s",
                      "[green]yes[/green]" if enabled else "[dim]no[/dim]")
    return table
