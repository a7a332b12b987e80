"""Billing use cases"""
from .generate_invoice import GenerateInvoice
from .generate_invoices_for_month import GenerateInvoicesForMonth
from .get_invoice import GetInvoice
from .confirm_invoice_payment import ConfirmInvoicePayment
from .mark_overdue_invoices import MarkOverdueInvoices
from .dtos import (
    GenerateInvoiceCommandDTO,
    InvoiceResponseDTO,
    InvoiceBatchResultDTO,
    ConfirmPaymentCommandDTO,
    InvoicePaymentResponseDTO,
    OverdueResultDTO,
)

__all__ = [
    "GenerateInvoice",
    "GenerateInvoicesForMonth",
    "GetInvoice",
    "ConfirmInvoicePayment",
    "MarkOverdueInvoices",
    "GenerateInvoiceCommandDTO",
    "InvoiceResponseDTO",
    "InvoiceBatchResultDTO",
    "ConfirmPaymentCommandDTO",
    "InvoicePaymentResponseDTO",
    "OverdueResultDTO",
]
