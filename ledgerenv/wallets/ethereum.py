"""
Ethereum developer wallet: compiles the test ERC20 token with py-solc-x and
deploys it via web3.py, signing with the node's developer key.
"""

from typing import Tuple

from eth_account import Account
from web3 import Web3
import logging
import solcx

SOLC_VERSION = "0.8.21"

ERC20_SOLIDITY_SOURCE = """
// SPDX-License-Identifier: MIT
pragma solidity ^0.8.21;

contract TestToken {
    string public name = "Test Token";
    string public symbol = "TT";
    uint8 public decimals = 18;
    uint256 public totalSupply;

    mapping(address => uint256) public balanceOf;
    mapping(address => mapping(address => uint256)) public allowance;

    event Transfer(address indexed from, address indexed to, uint256 value);
    event Approval(address indexed owner, address indexed spender, uint256 value);

    constructor(uint256 supply) {
        totalSupply = supply;
        balanceOf[msg.sender] = supply;
        emit Transfer(address(0), msg.sender, supply);
    }

    /// @notice Test-only faucet, lets any account mint to itself or others.
    function mint(address to, uint256 value) external {
        totalSupply += value;
        balanceOf[to] += value;
        emit Transfer(address(0), to, value);
    }

    function transfer(address to, uint256 value) external returns (bool) {
        _transfer(msg.sender, to, value);
        return true;
    }

    function approve(address spender, uint256 value) external returns (bool) {
        allowance[msg.sender][spender] = value;
        emit Approval(msg.sender, spender, value);
        return true;
    }

    function transferFrom(address from, address to, uint256 value) external returns (bool) {
        require(allowance[from][msg.sender] >= value, "allowance exceeded");
        allowance[from][msg.sender] -= value;
        _transfer(from, to, value);
        return true;
    }

    function _transfer(address from, address to, uint256 value) internal {
        require(balanceOf[from] >= value, "balance exceeded");
        balanceOf[from] -= value;
        balanceOf[to] += value;
        emit Transfer(from, to, value);
    }
}
"""

INITIAL_SUPPLY = 10**9 * 10**18


def _ensure_solc(version: str = SOLC_VERSION) -> None:
    """Install solc if missing."""
    if version not in [str(v) for v in solcx.get_installed_solc_versions()]:
        solcx.install_solc(version)
    solcx.set_solc_version(version)


def compile_erc20_contract(version: str = SOLC_VERSION) -> Tuple[list, str]:
    """Compile the test token and return (abi, bytecode)."""
    _ensure_solc(version)
    compiled = solcx.compile_source(
        ERC20_SOLIDITY_SOURCE,
        output_values=["abi", "bin"],
        solc_version=version,
    )
    _, contract_data = compiled.popitem()
    return contract_data["abi"], contract_data["bin"]


class EthereumWallet(object):
    def __init__(self, private_key: str, rpc_url: str, chain_id: int):
        self.w3 = Web3(Web3.HTTPProvider(rpc_url))
        self.account = Account.from_key(private_key)
        self.chain_id = chain_id

    @property
    def address(self) -> str:
        return self.account.address

    def deploy_erc20_token_contract(self) -> str:
        """Deploy the test token, crediting the whole supply to us.

        Returns the checksummed contract address.
        """
        abi, bytecode = compile_erc20_contract()
        contract = self.w3.eth.contract(abi=abi, bytecode=bytecode)
        tx = contract.constructor(INITIAL_SUPPLY).build_transaction({
            "from": self.address,
            "nonce": self.w3.eth.get_transaction_count(self.address),
            "chainId": self.chain_id,
        })
        if "gas" not in tx:
            tx["gas"] = self.w3.eth.estimate_gas(tx)
        signed = self.account.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=120)
        if receipt.status != 1:
            raise RuntimeError("ERC20 deployment {} reverted".format(tx_hash.hex()))

        logging.info("ERC20 token contract deployed at %s", receipt.contractAddress)
        return receipt.contractAddress
