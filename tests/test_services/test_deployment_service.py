"""Tests for DeploymentService."""

import pytest

from core.relay import (
    DeploymentError,
    SigningDeclinedError,
    TransactionFailedError,
)
from services.deployment_service import DeploymentService, DeploymentState


class TestDeploymentService:
    """Test cases for DeploymentService."""

    @pytest.mark.asyncio
    async def test_already_deployed(self, context, signer, wallet, fake_chain, fake_relay):
        """Test that an existing Safe short-circuits without submitting."""
        fake_chain.deploy(wallet.counterfactual_address)
        service = DeploymentService(context, signer)

        result = await service.ensure_deployed(wallet)

        assert result.state == DeploymentState.DEPLOYED
        assert result.submitted is False
        assert result.transitions == [
            DeploymentState.NOT_DEPLOYED,
            DeploymentState.CHECKING,
            DeploymentState.DEPLOYED,
        ]
        assert fake_relay.submissions == []
        assert wallet.deployed is True

    @pytest.mark.asyncio
    async def test_full_deployment(self, context, signer, wallet, fake_chain, fake_relay):
        """Test the full CHECKING -> SIGNING -> SUBMITTING -> POLLING -> DEPLOYED flow."""
        seen_states = []
        service = DeploymentService(context, signer, on_state_change=seen_states.append)

        result = await service.ensure_deployed(wallet)

        assert result.state == DeploymentState.DEPLOYED
        assert result.transaction_id == "tx-1"
        assert result.transitions == [
            DeploymentState.NOT_DEPLOYED,
            DeploymentState.CHECKING,
            DeploymentState.SIGNING,
            DeploymentState.SUBMITTING,
            DeploymentState.POLLING,
            DeploymentState.DEPLOYED,
        ]
        assert seen_states == result.transitions[1:]
        assert wallet.deployed is True

        (body,) = fake_relay.submissions
        assert body["type"] == "SAFE-CREATE"
        assert body["eoaAddress"] == signer.address
        assert body["proxyAddress"] == wallet.counterfactual_address

    @pytest.mark.asyncio
    async def test_relay_check_falls_back_to_chain(self, context, signer, wallet, fake_chain, fake_relay):
        """Test that a relayer outage during the check falls back to an on-chain code check."""
        fake_relay.deployed_unavailable = True
        fake_chain.deploy(wallet.counterfactual_address)
        service = DeploymentService(context, signer)

        assert await service.check_deployed(wallet) is True
        assert fake_chain.reads == 1

    @pytest.mark.asyncio
    async def test_timeout_rechecks_deployment(self, context, signer, wallet, fake_relay):
        """Test that a poll timeout is resolved by re-checking deployment."""
        fake_relay.final_state = "STATE_EXECUTED"
        service = DeploymentService(context, signer)

        result = await service.ensure_deployed(wallet)

        assert result.state == DeploymentState.DEPLOYED
        assert result.transitions[-2:] == [DeploymentState.CHECKING, DeploymentState.DEPLOYED]

    @pytest.mark.asyncio
    async def test_timeout_without_deployment_raises(self, context, signer, wallet, fake_relay):
        fake_relay.final_state = "STATE_EXECUTED"
        fake_relay.apply_effects = False
        service = DeploymentService(context, signer)

        with pytest.raises(DeploymentError) as exc_info:
            await service.ensure_deployed(wallet)

        assert exc_info.value.transaction_id == "tx-1"
        assert wallet.deployed is False

    @pytest.mark.asyncio
    async def test_status_outage_rechecks_deployment(self, context, signer, wallet, fake_relay):
        """Test that a relayer outage while polling is resolved by re-checking deployment."""
        fake_relay.transaction_unavailable = True
        service = DeploymentService(context, signer)

        result = await service.ensure_deployed(wallet)

        assert result.state == DeploymentState.DEPLOYED
        assert result.transaction_id == "tx-1"
        assert result.transitions[-3:] == [
            DeploymentState.POLLING,
            DeploymentState.CHECKING,
            DeploymentState.DEPLOYED,
        ]

    @pytest.mark.asyncio
    async def test_status_outage_without_deployment_raises(self, context, signer, wallet, fake_relay):
        fake_relay.transaction_unavailable = True
        fake_relay.apply_effects = False
        seen_states = []
        service = DeploymentService(context, signer, on_state_change=seen_states.append)

        with pytest.raises(DeploymentError) as exc_info:
            await service.ensure_deployed(wallet)

        assert exc_info.value.transaction_id == "tx-1"
        assert seen_states[-2:] == [DeploymentState.CHECKING, DeploymentState.FAILED]

    @pytest.mark.asyncio
    async def test_failed_deployment(self, context, signer, wallet, fake_relay):
        fake_relay.final_state = "STATE_FAILED"
        seen_states = []
        service = DeploymentService(context, signer, on_state_change=seen_states.append)

        with pytest.raises(TransactionFailedError) as exc_info:
            await service.ensure_deployed(wallet)

        assert exc_info.value.transaction_id == "tx-1"
        assert seen_states[-1] == DeploymentState.FAILED

    @pytest.mark.asyncio
    async def test_proxy_address_mismatch(self, context, signer, wallet, fake_relay):
        fake_relay.proxy_address_override = "0x000000000000000000000000000000000000dEaD"
        service = DeploymentService(context, signer)

        with pytest.raises(DeploymentError):
            await service.ensure_deployed(wallet)

    @pytest.mark.asyncio
    async def test_declined_signature_submits_nothing(self, context, wallet, fake_relay):
        class DecliningSigner:
            async def get_address(self):
                return wallet.owner_address

            async def sign_message_hash(self, message_hash):
                raise SigningDeclinedError("User rejected the request")

            async def sign_typed_data(self, typed_data):
                raise SigningDeclinedError("User rejected the request")

        service = DeploymentService(context, DecliningSigner())

        with pytest.raises(SigningDeclinedError) as exc_info:
            await service.ensure_deployed(wallet)

        assert exc_info.value.stage == "signing"
        assert fake_relay.submissions == []
