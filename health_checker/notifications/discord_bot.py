"""Discord session: presence, direct messages and the /startvm command."""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo

import discord
import structlog
from discord import app_commands

from ..config import HealthCheckerConfig
from ..recovery.azure_vm import AzureVMRecoveryAction, RecoveryOutcome
from ..scheduler.health_monitor import HealthMonitor
from ..scheduler.job_scheduler import JobScheduler
from .messages import StatusMessage, build_recovery_message, load_timezone


logger = structlog.get_logger(__name__)


def build_embed(message: StatusMessage) -> discord.Embed:
    embed = discord.Embed(title=message.title, description=message.body, color=discord.Color(message.color))
    for item in message.fields:
        embed.add_field(name=item.name, value=item.value, inline=item.inline)
    return embed


class DiscordNotificationSink:
    """Delivers presence updates and DMs through a connected Discord client.

    Both methods report delivery as a bool and never raise; failures are
    logged and not retried.
    """

    def __init__(self, client: discord.Client):
        self.client = client

    async def set_presence(self, text: str, active: bool) -> bool:
        activity = discord.Activity(type=discord.ActivityType.watching, name=text)
        status = discord.Status.online if active else discord.Status.dnd
        try:
            # AutoShardedClient applies this to every shard.
            await self.client.change_presence(activity=activity, status=status)
        except Exception as e:
            logger.error("Presence update failed", error=f"{type(e).__name__}: {e}")
            return False
        logger.info("Presence updated", text=text, active=active)
        return True

    async def send_direct_message(self, recipient_id: str, message: StatusMessage) -> bool:
        try:
            user_id = int(recipient_id)
            user = self.client.get_user(user_id) or await self.client.fetch_user(user_id)
            await user.send(embed=build_embed(message))
        except (ValueError, discord.DiscordException) as e:
            logger.error(
                "Direct message failed",
                recipient_id=recipient_id,
                title=message.title,
                error=f"{type(e).__name__}: {e}",
            )
            return False
        logger.info("Direct message sent", recipient_id=recipient_id, title=message.title)
        return True


async def respond_with_recovery(
    interaction: discord.Interaction,
    action: AzureVMRecoveryAction,
    *,
    tz: tzinfo,
) -> RecoveryOutcome | None:
    """
    Acknowledge the command right away (the Azure calls can outlast Discord's
    3s response window), run the recovery action, then edit in the result.
    """
    try:
        await interaction.response.defer(thinking=True)
    except discord.HTTPException as e:
        logger.error("Could not acknowledge /startvm", error=f"{type(e).__name__}: {e}")
        return None

    outcome = await action.invoke()
    executed_at = datetime.now(timezone.utc)
    message = build_recovery_message(outcome, executed_at=executed_at, tz=tz)

    try:
        await interaction.edit_original_response(embed=build_embed(message))
    except discord.HTTPException as e:
        logger.error("Could not report /startvm result", error=f"{type(e).__name__}: {e}")

    logger.info(
        "/startvm executed",
        user=str(getattr(interaction, "user", "")),
        succeeded=outcome.succeeded,
        status_code=outcome.status_code,
    )
    return outcome


class HealthCheckBot(discord.AutoShardedClient):
    """Discord client that hosts the health monitor."""

    def __init__(
        self,
        config: HealthCheckerConfig,
        recovery_action: AzureVMRecoveryAction | None = None,
        job_scheduler: JobScheduler | None = None,
    ):
        intents = discord.Intents.none()
        intents.guilds = True
        super().__init__(intents=intents)

        self.config = config
        self.tree = app_commands.CommandTree(self)
        self.notification_sink = DiscordNotificationSink(self)
        self.monitor = HealthMonitor(config, self.notification_sink)
        self.recovery_action = recovery_action or AzureVMRecoveryAction(
            config.azure, timeout_seconds=config.recovery_timeout_seconds
        )
        self.job_scheduler = job_scheduler or JobScheduler()
        self._tz = load_timezone(config.display_timezone)
        self._monitor_started = False

        self._register_commands()

    def _register_commands(self):
        @self.tree.command(name="startvm", description="Start the Azure virtual machine")
        async def startvm(interaction: discord.Interaction) -> None:
            await respond_with_recovery(interaction, self.recovery_action, tz=self._tz)

    async def setup_hook(self) -> None:
        try:
            synced = await self.tree.sync()
        except discord.HTTPException as e:
            logger.error("Slash command registration failed", error=f"{type(e).__name__}: {e}")
            return
        logger.info("Slash commands registered", commands=[cmd.name for cmd in synced])

    async def on_ready(self) -> None:
        logger.info("Logged in", user=str(self.user), shards=self.shard_count)
        if self._monitor_started:
            await self.monitor.refresh_presence()
            return

        self._monitor_started = True
        self.monitor.schedule(self.job_scheduler)
        await self.job_scheduler.start()
        logger.info(
            "Health monitor started",
            target=self.config.target,
            interval_seconds=self.config.check_interval_seconds,
        )

    async def close(self) -> None:
        await self.job_scheduler.stop()
        await super().close()
